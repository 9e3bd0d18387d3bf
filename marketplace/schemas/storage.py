"""
Pydantic schemas for stored objects.
"""

from pydantic import BaseModel, Field


class StoredObjectResponse(BaseModel):
    bucket: str = Field(..., examples=["property-images"])
    path: str = Field(
        ...,
        description="Path relative to the storage root; reference it from listings or verification data",
        examples=["property-images/1f0c.../9b2e....jpg"]
    )
    size: int = Field(..., description="Size in bytes")
    content_type: str = Field(..., examples=["image/jpeg"])
