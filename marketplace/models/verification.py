"""
Identity verification (KYC/KYB) request model.
One row per submission attempt; the most recent row is authoritative for a user.
"""

from sqlalchemy import String, Text, JSON, DateTime, Enum as SQLEnum, ForeignKey, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from marketplace.database import Base
from datetime import datetime
import enum
import uuid
from typing import Any, Dict, Optional


class VerificationKind(str, enum.Enum):
    """Individual (KYC) or business (KYB) verification."""
    INDIVIDUAL = "individual"
    BUSINESS = "business"


class VerificationStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    NEEDS_REVISION = "needs_revision"


# Allowed status transitions; approved and rejected are terminal.
VERIFICATION_TRANSITIONS = {
    VerificationStatus.PENDING: {
        VerificationStatus.APPROVED,
        VerificationStatus.REJECTED,
        VerificationStatus.NEEDS_REVISION,
    },
    VerificationStatus.NEEDS_REVISION: {VerificationStatus.PENDING},
    VerificationStatus.APPROVED: set(),
    VerificationStatus.REJECTED: set(),
}


class VerificationRequest(Base):
    """
    A KYC/KYB submission.
    Created pending; mutated only by admin review or the simulated auto-approval.
    """

    __tablename__ = "kyc_verifications"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Subject of the verification"
    )

    verification_type: Mapped[VerificationKind] = mapped_column(
        SQLEnum(VerificationKind),
        nullable=False,
        comment="individual or business"
    )

    status: Mapped[VerificationStatus] = mapped_column(
        SQLEnum(VerificationStatus),
        nullable=False,
        default=VerificationStatus.PENDING,
        index=True
    )

    company_name: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="Company name for business verifications"
    )

    verification_data: Mapped[Dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        comment="Submitted personal, address, document and company data"
    )

    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    verified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    def __repr__(self) -> str:
        return f"<VerificationRequest(id={self.id}, user_id={self.user_id}, status={self.status})>"

    def can_transition_to(self, new_status: VerificationStatus) -> bool:
        return new_status in VERIFICATION_TRANSITIONS[self.status]

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "verification_type": self.verification_type.value,
            "status": self.status.value,
            "company_name": self.company_name,
            "verification_data": self.verification_data,
            "rejection_reason": self.rejection_reason,
            "admin_notes": self.admin_notes,
            "verified_at": self.verified_at.isoformat() if self.verified_at else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


# Latest-request lookups per user
user_latest_index = Index(
    "idx_kyc_verifications_user_created",
    VerificationRequest.user_id,
    VerificationRequest.created_at.desc()
)
