"""
Pydantic schemas for property listing requests and responses.
Handles drafts, submissions, admin review actions and token issuance.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from marketplace.models.property import PropertyType, PropertyStatus, MAX_VALUATION
from marketplace.schemas.token import TokenIssuanceResponse


class PropertyBase(BaseModel):
    """Base property schema with common fields."""

    title: str = Field(
        ...,
        min_length=3,
        max_length=255,
        description="Property listing title",
        examples=["Riverside Office Block"]
    )

    address: str = Field(
        ...,
        min_length=5,
        max_length=500,
        description="Property address",
        examples=["12 Quay Street, Manchester"]
    )

    property_type: PropertyType = Field(
        ...,
        description="Property type",
        examples=["commercial"]
    )

    valuation: Decimal = Field(
        ...,
        gt=0,
        description="Property valuation in USD",
        examples=[1000000.00]
    )

    description: Optional[str] = Field(None, max_length=5000)

    highlights: Optional[str] = Field(None, max_length=2000, description="Key selling points")

    expected_tokens: Optional[int] = Field(
        None,
        gt=0,
        description="Token count suggested by the owner",
        examples=[10000]
    )

    property_images: List[str] = Field(
        default_factory=list,
        description="Ordered stored-object paths from the property-images bucket"
    )

    ownership_documents: List[str] = Field(
        default_factory=list,
        description="Stored-object paths from the property-documents bucket"
    )

    latitude: Optional[Decimal] = Field(None, ge=-90, le=90)

    longitude: Optional[Decimal] = Field(None, ge=-180, le=180)

    @field_validator("title", "address")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Field cannot be empty")
        return v.strip()

    @field_validator("valuation")
    @classmethod
    def validate_valuation(cls, v):
        """Validate valuation value."""
        if v > MAX_VALUATION:
            raise ValueError("Valuation exceeds maximum allowed value")
        return v

    @model_validator(mode="after")
    def validate_coordinates(self):
        """Validate that both coordinates are provided together or both are None."""
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("Both latitude and longitude must be provided together, or both must be None")
        return self


class PropertyCreate(PropertyBase):
    """Schema for creating a listing (as draft or directly submitted)."""

    model_config = {
        "json_schema_extra": {
            "example": {
                "title": "Riverside Office Block",
                "address": "12 Quay Street, Manchester",
                "property_type": "commercial",
                "valuation": 1000000.00,
                "description": "Grade A offices with river views.",
                "expected_tokens": 10000
            }
        }
    }


class PropertyUpdate(BaseModel):
    """Partial update of a draft listing; omitted fields are left unchanged."""

    title: Optional[str] = Field(None, min_length=3, max_length=255)
    address: Optional[str] = Field(None, min_length=5, max_length=500)
    property_type: Optional[PropertyType] = None
    valuation: Optional[Decimal] = Field(None, gt=0)
    description: Optional[str] = Field(None, max_length=5000)
    highlights: Optional[str] = Field(None, max_length=2000)
    expected_tokens: Optional[int] = Field(None, gt=0)
    property_images: Optional[List[str]] = None
    ownership_documents: Optional[List[str]] = None
    latitude: Optional[Decimal] = Field(None, ge=-90, le=90)
    longitude: Optional[Decimal] = Field(None, ge=-180, le=180)

    @field_validator("title", "address")
    @classmethod
    def not_blank(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Field cannot be empty")
        return v.strip() if v is not None else v

    @field_validator("valuation")
    @classmethod
    def validate_valuation(cls, v):
        if v is not None and v > MAX_VALUATION:
            raise ValueError("Valuation exceeds maximum allowed value")
        return v


class PropertyApproveRequest(BaseModel):
    admin_notes: Optional[str] = Field(None, max_length=2000)


class PropertyRejectRequest(BaseModel):
    """Admin rejection; the reason is stored and shown to the owner."""

    reason: str = Field(..., max_length=2000)
    admin_notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Rejection reason is required")
        return v.strip()


class TokenIssueRequest(BaseModel):
    """Admin-defined token pool for an approved property."""

    total_tokens: int = Field(..., gt=0, description="Total token supply", examples=[10000])
    price_per_token: Decimal = Field(..., gt=0, description="Price per token in USD", examples=[100.00])


class PropertyResponse(BaseModel):
    """Schema for property response."""

    id: str
    owner_id: str
    title: str
    address: str
    property_type: PropertyType
    valuation: Decimal
    description: Optional[str] = None
    highlights: Optional[str] = None
    property_images: List[str] = Field(default_factory=list)
    ownership_documents: List[str] = Field(default_factory=list)
    expected_tokens: Optional[int] = None
    latitude: Optional[Decimal] = None
    longitude: Optional[Decimal] = None
    status: PropertyStatus
    rejection_reason: Optional[str] = None
    admin_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    token_issuance: Optional[TokenIssuanceResponse] = None


class PropertyListResponse(BaseModel):
    """Schema for paginated property list response."""

    properties: List[PropertyResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool
