"""
Property listing model for tokenization.
Handles owner-submitted listings, review status and stored-object references.
"""

from sqlalchemy import String, Text, Integer, Numeric, JSON, Enum as SQLEnum, Index, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from marketplace.database import Base
from decimal import Decimal
import enum
import uuid
from typing import List, Optional


class PropertyType(str, enum.Enum):
    """Property type enumeration."""
    RESIDENTIAL = "residential"
    COMMERCIAL = "commercial"
    INDUSTRIAL = "industrial"
    LAND = "land"
    MIXED_USE = "mixed_use"


class PropertyStatus(str, enum.Enum):
    """Listing lifecycle: draft -> pending -> approved -> tokenized, or rejected."""
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    TOKENIZED = "tokenized"


PROPERTY_TRANSITIONS = {
    PropertyStatus.DRAFT: {PropertyStatus.PENDING},
    PropertyStatus.PENDING: {PropertyStatus.APPROVED, PropertyStatus.REJECTED},
    PropertyStatus.APPROVED: {PropertyStatus.TOKENIZED},
    PropertyStatus.REJECTED: set(),
    PropertyStatus.TOKENIZED: set(),
}

MAX_VALUATION = Decimal("999999999999.99")


class Property(Base):
    """
    Property listing submitted by an owner for tokenization.
    Never deleted; mutated by owner edits while draft and by admin review.
    """

    __tablename__ = "properties"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="ID of the listing owner"
    )

    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Property listing title"
    )

    address: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        comment="Property address"
    )

    property_type: Mapped[PropertyType] = mapped_column(
        SQLEnum(PropertyType),
        nullable=False,
        index=True
    )

    valuation: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
        comment="Property valuation in USD"
    )

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    highlights: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    property_images: Mapped[List[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Ordered stored-object paths of listing images"
    )

    ownership_documents: Mapped[List[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Stored-object paths of ownership documents"
    )

    expected_tokens: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Token count suggested by the owner"
    )

    latitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(precision=10, scale=8), nullable=True)

    longitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(precision=11, scale=8), nullable=True)

    status: Mapped[PropertyStatus] = mapped_column(
        SQLEnum(PropertyStatus),
        nullable=False,
        default=PropertyStatus.PENDING,
        index=True
    )

    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        """String representation of the property."""
        return f"<Property(id={self.id}, title={self.title[:30]}, status={self.status})>"

    def can_transition_to(self, new_status: PropertyStatus) -> bool:
        return new_status in PROPERTY_TRANSITIONS[self.status]

    @property
    def is_editable(self) -> bool:
        return self.status == PropertyStatus.DRAFT

    def validate_valuation(self) -> None:
        """
        Validate property valuation.

        Raises:
            ValueError: If valuation is invalid
        """
        if self.valuation is None or self.valuation <= 0:
            raise ValueError("Property valuation must be greater than 0")

        if self.valuation > MAX_VALUATION:
            raise ValueError("Property valuation exceeds maximum allowed value")

    def validate_expected_tokens(self) -> None:
        if self.expected_tokens is not None and self.expected_tokens <= 0:
            raise ValueError("Expected tokens must be a positive integer")

    def validate_coordinates(self) -> None:
        """
        Validate latitude and longitude coordinates.

        Raises:
            ValueError: If coordinates are invalid
        """
        if self.latitude is not None and not (-90 <= self.latitude <= 90):
            raise ValueError("Latitude must be between -90 and 90 degrees")

        if self.longitude is not None and not (-180 <= self.longitude <= 180):
            raise ValueError("Longitude must be between -180 and 180 degrees")

    def validate_all(self) -> None:
        """
        Run all validation checks on the property.

        Raises:
            ValueError: If any validation fails
        """
        self.validate_valuation()
        self.validate_expected_tokens()
        self.validate_coordinates()

    def to_dict(self) -> dict:
        """Convert property to dictionary."""
        return {
            "id": str(self.id),
            "owner_id": str(self.owner_id),
            "title": self.title,
            "address": self.address,
            "property_type": self.property_type.value,
            "valuation": float(self.valuation),
            "description": self.description,
            "highlights": self.highlights,
            "property_images": list(self.property_images or []),
            "ownership_documents": list(self.ownership_documents or []),
            "expected_tokens": self.expected_tokens,
            "latitude": float(self.latitude) if self.latitude is not None else None,
            "longitude": float(self.longitude) if self.longitude is not None else None,
            "status": self.status.value,
            "rejection_reason": self.rejection_reason,
            "admin_notes": self.admin_notes,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


# Review queues filter by status, owners list their own listings
status_created_index = Index(
    "idx_properties_status_created",
    Property.status,
    Property.created_at.desc()
)

owner_status_index = Index(
    "idx_properties_owner_status",
    Property.owner_id,
    Property.status
)
