"""
Pydantic schemas for user requests and responses.
Handles sign-up, profile mode, role grants and admin user listings.
"""

from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List
from datetime import datetime
from marketplace.models.user import UserMode, AppRole


class UserCreate(BaseModel):
    """Schema for signing up a new user."""

    email: EmailStr = Field(
        ...,
        description="User's email address",
        examples=["investor@example.com"]
    )

    password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="User's password (minimum 8 characters)",
        examples=["securepassword123"]
    )

    full_name: Optional[str] = Field(
        None,
        max_length=255,
        description="User's full name",
        examples=["Jane Doe"]
    )

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        """Normalize email to lowercase."""
        return v.lower().strip()

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v):
        if v is None:
            return v
        if not v.strip():
            raise ValueError("Full name cannot be empty")
        return v.strip()

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        """Validate password strength."""
        has_letter = any(c.isalpha() for c in v)
        has_number = any(c.isdigit() for c in v)

        if not has_letter:
            raise ValueError("Password must contain at least one letter")

        if not has_number:
            raise ValueError("Password must contain at least one number")

        return v

    model_config = {
        "json_schema_extra": {
            "example": {
                "email": "investor@example.com",
                "password": "securepassword123",
                "full_name": "Jane Doe"
            }
        }
    }


class UserResponse(BaseModel):
    """User response schema (excluding sensitive data)."""

    id: str = Field(..., description="User's unique identifier")
    email: EmailStr = Field(..., description="User's email address")
    full_name: Optional[str] = Field(None, description="User's full name")
    mode: UserMode = Field(..., description="Preferred dashboard mode")
    roles: List[AppRole] = Field(default_factory=list, description="Granted roles")
    is_active: bool = Field(..., description="Whether the user account is active")
    created_at: datetime = Field(..., description="Account creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    model_config = {"from_attributes": True}


class UserListResponse(BaseModel):
    """Schema for paginated user list response."""

    users: List[UserResponse]
    total: int = Field(..., description="Total number of users matching the criteria")
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


class ModeUpdateRequest(BaseModel):
    """Switch between buyer and seller dashboards."""

    mode: UserMode = Field(..., description="New dashboard mode", examples=["seller"])


class RoleUpdateRequest(BaseModel):
    """Grant or revoke a role."""

    role: AppRole = Field(..., description="Role to grant or revoke", examples=["admin"])
