"""
Token issuance and purchase ledger models.
An issuance is the one-time token pool of a tokenized property; purchases are append-only.
"""

from sqlalchemy import Integer, Numeric, DateTime, ForeignKey, CheckConstraint, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from marketplace.database import Base, utcnow
from datetime import datetime
from decimal import Decimal
import uuid


class TokenIssuance(Base):
    """
    Token pool attached 1:1 to a tokenized property.
    total_tokens is immutable; available_tokens only decreases through purchases.
    """

    __tablename__ = "property_tokens"
    __table_args__ = (
        CheckConstraint("total_tokens > 0", name="ck_property_tokens_total_positive"),
        CheckConstraint("available_tokens >= 0", name="ck_property_tokens_available_non_negative"),
        CheckConstraint("available_tokens <= total_tokens", name="ck_property_tokens_available_le_total"),
        CheckConstraint("price_per_token > 0", name="ck_property_tokens_price_positive"),
    )

    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        comment="Tokenized property (one issuance per property)"
    )

    total_tokens: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Total token supply, fixed at issuance"
    )

    available_tokens: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Tokens not yet sold"
    )

    price_per_token: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
        comment="Current price per token in USD"
    )

    def __repr__(self) -> str:
        return (
            f"<TokenIssuance(property_id={self.property_id}, "
            f"available={self.available_tokens}/{self.total_tokens})>"
        )

    @property
    def tokens_sold(self) -> int:
        return self.total_tokens - self.available_tokens

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "property_id": str(self.property_id),
            "total_tokens": self.total_tokens,
            "available_tokens": self.available_tokens,
            "tokens_sold": self.tokens_sold,
            "price_per_token": float(self.price_per_token),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class TokenPurchase(Base):
    """Immutable purchase record with the price snapshot taken at purchase time."""

    __tablename__ = "token_purchases"
    __table_args__ = (
        CheckConstraint("tokens_purchased > 0", name="ck_token_purchases_tokens_positive"),
    )

    buyer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    tokens_purchased: Mapped[int] = mapped_column(Integer, nullable=False)

    price_per_token: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
        comment="Price snapshot at purchase time"
    )

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        nullable=False,
        comment="tokens_purchased x price_per_token"
    )

    purchased_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow
    )

    def __repr__(self) -> str:
        return f"<TokenPurchase(buyer_id={self.buyer_id}, property_id={self.property_id}, tokens={self.tokens_purchased})>"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "buyer_id": str(self.buyer_id),
            "property_id": str(self.property_id),
            "tokens_purchased": self.tokens_purchased,
            "price_per_token": float(self.price_per_token),
            "total_amount": float(self.total_amount),
            "purchased_at": self.purchased_at.isoformat(),
        }


buyer_purchased_index = Index(
    "idx_token_purchases_buyer_purchased",
    TokenPurchase.buyer_id,
    TokenPurchase.purchased_at.desc()
)
