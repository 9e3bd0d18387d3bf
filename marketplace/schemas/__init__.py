"""
Pydantic schemas for request/response validation.
"""

from .auth import (
    LoginRequest,
    RefreshTokenRequest,
    AccessTokenResponse,
    LoginResponse,
    TokenValidationResponse
)

from .user import (
    UserCreate,
    UserResponse,
    UserListResponse,
    ModeUpdateRequest,
    RoleUpdateRequest
)

from .verification import (
    IndividualVerification,
    BusinessVerification,
    VerificationData,
    VerificationSubmitRequest,
    ApproveRequest,
    RejectRequest,
    RevisionRequest,
    BulkApproveRequest,
    BulkApproveResponse,
    VerificationResponse,
    VerificationStatusResponse,
    VerificationListResponse
)

from .property import (
    PropertyCreate,
    PropertyUpdate,
    PropertyApproveRequest,
    PropertyRejectRequest,
    TokenIssueRequest,
    PropertyResponse,
    PropertyListResponse
)

from .token import (
    TokenIssuanceResponse,
    PurchaseRequest,
    PurchaseResponse,
    PurchaseListResponse
)

from .portfolio import (
    Holding,
    PortfolioResponse,
    ListingEarnings,
    EarningsResponse,
    AdminOverviewResponse
)

from .storage import StoredObjectResponse

__all__ = [
    # Authentication
    "LoginRequest",
    "RefreshTokenRequest",
    "AccessTokenResponse",
    "LoginResponse",
    "TokenValidationResponse",

    # User
    "UserCreate",
    "UserResponse",
    "UserListResponse",
    "ModeUpdateRequest",
    "RoleUpdateRequest",

    # Verification
    "IndividualVerification",
    "BusinessVerification",
    "VerificationData",
    "VerificationSubmitRequest",
    "ApproveRequest",
    "RejectRequest",
    "RevisionRequest",
    "BulkApproveRequest",
    "BulkApproveResponse",
    "VerificationResponse",
    "VerificationStatusResponse",
    "VerificationListResponse",

    # Property
    "PropertyCreate",
    "PropertyUpdate",
    "PropertyApproveRequest",
    "PropertyRejectRequest",
    "TokenIssueRequest",
    "PropertyResponse",
    "PropertyListResponse",

    # Tokens
    "TokenIssuanceResponse",
    "PurchaseRequest",
    "PurchaseResponse",
    "PurchaseListResponse",

    # Portfolio
    "Holding",
    "PortfolioResponse",
    "ListingEarnings",
    "EarningsResponse",
    "AdminOverviewResponse",

    # Storage
    "StoredObjectResponse",
]
