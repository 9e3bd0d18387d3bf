"""
User profile model with authentication and role management.
Handles marketplace accounts (buyers, sellers) and their role assignments.
"""

from sqlalchemy import String, Boolean, Enum as SQLEnum, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from marketplace.database import Base
from passlib.context import CryptContext
from email_validator import validate_email, EmailNotValidError
import enum
import uuid
from typing import List, Optional, Set

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class UserMode(str, enum.Enum):
    """Dashboard mode chosen by the user. A UI preference, not a permission."""
    BUYER = "buyer"
    SELLER = "seller"


class AppRole(str, enum.Enum):
    """Role enumeration stored in the user_roles table."""
    ADMIN = "admin"
    USER = "user"


class UserRoleAssignment(Base):
    """A single (user, role) grant."""

    __tablename__ = "user_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    role: Mapped[AppRole] = mapped_column(
        SQLEnum(AppRole),
        nullable=False,
        comment="Granted role"
    )


class User(Base):
    """
    User profile for authentication and authorization.
    Roles live in user_roles; mode is a user-settable preference.
    """

    __tablename__ = "profiles"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        comment="User email address - must be unique and valid"
    )

    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Bcrypt hashed password"
    )

    full_name: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="User's full name"
    )

    mode: Mapped[UserMode] = mapped_column(
        SQLEnum(UserMode),
        nullable=False,
        default=UserMode.BUYER,
        comment="Preferred dashboard mode"
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        index=True,
        comment="Whether the user account is active"
    )

    role_assignments: Mapped[List[UserRoleAssignment]] = relationship(
        UserRoleAssignment,
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        """String representation of the user."""
        return f"<User(id={self.id}, email={self.email}, mode={self.mode})>"

    @classmethod
    def validate_email_format(cls, email: str) -> str:
        """
        Validate email format using email-validator.

        Args:
            email: Email address to validate

        Returns:
            Normalized email address

        Raises:
            ValueError: If email format is invalid
        """
        try:
            valid_email = validate_email(email, check_deliverability=False)
            return valid_email.normalized.lower()
        except EmailNotValidError as e:
            raise ValueError(f"Invalid email format: {str(e)}")

    @classmethod
    def hash_password(cls, password: str) -> str:
        """
        Hash a password using bcrypt.

        Raises:
            ValueError: If the password is shorter than 8 characters
        """
        if not password or len(password) < 8:
            raise ValueError("Password must be at least 8 characters long")

        return pwd_context.hash(password)

    def verify_password(self, password: str) -> bool:
        """Verify a password against the stored hash."""
        return pwd_context.verify(password, self.hashed_password)

    @property
    def roles(self) -> Set[AppRole]:
        return {assignment.role for assignment in self.role_assignments}

    def has_role(self, role: AppRole) -> bool:
        return role in self.roles

    @property
    def is_admin(self) -> bool:
        """Check if user has the admin role."""
        return self.has_role(AppRole.ADMIN)

    def to_dict(self) -> dict:
        """
        Convert user to dictionary (excluding sensitive data).

        Returns:
            Dictionary representation of user
        """
        return {
            "id": str(self.id),
            "email": self.email,
            "full_name": self.full_name,
            "mode": self.mode.value,
            "roles": sorted(role.value for role in self.roles),
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
