"""
Pydantic schemas for identity verification (KYC/KYB).
Submitted data is a tagged variant on ``kind``: individual or business.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Annotated, List, Literal, Optional, Union
from datetime import date, datetime
from marketplace.models.verification import VerificationKind, VerificationStatus


def _required_text(v: str) -> str:
    if v is None or not str(v).strip():
        raise ValueError("Field cannot be empty")
    return str(v).strip()


class PersonalInfo(BaseModel):
    """Personal details of the subject (or the company director)."""

    first_name: str = Field(..., max_length=100, examples=["Jane"])
    last_name: str = Field(..., max_length=100, examples=["Doe"])
    date_of_birth: date = Field(..., examples=["1990-04-12"])
    nationality: str = Field(..., max_length=100, examples=["Portuguese"])

    @field_validator("first_name", "last_name", "nationality")
    @classmethod
    def not_blank(cls, v):
        return _required_text(v)

    @field_validator("date_of_birth")
    @classmethod
    def not_in_future(cls, v):
        if v >= date.today():
            raise ValueError("Date of birth must be in the past")
        return v


class AddressInfo(BaseModel):
    street: str = Field(..., max_length=255)
    city: str = Field(..., max_length=100)
    postal_code: str = Field(..., max_length=20)
    country: str = Field(..., max_length=100)

    @field_validator("street", "city", "postal_code", "country")
    @classmethod
    def not_blank(cls, v):
        return _required_text(v)


class DocumentRefs(BaseModel):
    """Stored-object paths returned by the kyc-documents upload endpoint."""

    id_document: Optional[str] = Field(None, description="Passport or national ID scan")
    proof_of_address: Optional[str] = Field(None, description="Utility bill or bank statement")
    selfie: Optional[str] = Field(None, description="Selfie, or director photo for businesses")


class CompanyInfo(BaseModel):
    name: str = Field(..., max_length=255, examples=["Acme Holdings Ltd"])
    registration_number: str = Field(..., max_length=100)
    tax_id: str = Field(..., max_length=100)

    @field_validator("name", "registration_number", "tax_id")
    @classmethod
    def not_blank(cls, v):
        return _required_text(v)


class IndividualVerification(BaseModel):
    """KYC submission for a natural person."""

    kind: Literal["individual"] = "individual"
    personal_info: PersonalInfo
    address: AddressInfo
    documents: DocumentRefs = Field(default_factory=DocumentRefs)


class BusinessVerification(BaseModel):
    """KYB submission: director details plus company information."""

    kind: Literal["business"] = "business"
    personal_info: PersonalInfo
    address: AddressInfo
    documents: DocumentRefs = Field(default_factory=DocumentRefs)
    company_info: CompanyInfo


VerificationData = Annotated[
    Union[IndividualVerification, BusinessVerification],
    Field(discriminator="kind")
]


class VerificationSubmitRequest(BaseModel):
    """Body of a submission or resubmission."""

    data: VerificationData

    model_config = {
        "json_schema_extra": {
            "example": {
                "data": {
                    "kind": "individual",
                    "personal_info": {
                        "first_name": "Jane",
                        "last_name": "Doe",
                        "date_of_birth": "1990-04-12",
                        "nationality": "Portuguese"
                    },
                    "address": {
                        "street": "Rua Augusta 10",
                        "city": "Lisbon",
                        "postal_code": "1100-053",
                        "country": "Portugal"
                    },
                    "documents": {"id_document": "kyc-documents/<user>/<file>.pdf"}
                }
            }
        }
    }


class ApproveRequest(BaseModel):
    admin_notes: Optional[str] = Field(None, max_length=2000)


class RejectRequest(BaseModel):
    """Admin rejection; a reason is mandatory and is shown to the subject."""

    reason: str = Field(..., max_length=2000)
    admin_notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Rejection reason is required")
        return v.strip()


class RevisionRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=2000, description="What the subject must change")


class BulkApproveRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1, max_length=100)


class VerificationResponse(BaseModel):
    id: str
    user_id: str
    verification_type: VerificationKind
    status: VerificationStatus
    company_name: Optional[str] = None
    verification_data: dict
    rejection_reason: Optional[str] = None
    admin_notes: Optional[str] = None
    verified_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class VerificationStatusResponse(BaseModel):
    """Current status of a user, derived from the latest request."""

    user_id: str
    status: Optional[VerificationStatus] = Field(None, description="None when the user never submitted")
    request_id: Optional[str] = None
    can_list_properties: bool


class VerificationListResponse(BaseModel):
    requests: List[VerificationResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


class BulkApproveResponse(BaseModel):
    approved: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list, description="IDs not found or not pending")
