"""
Database models for the Tokenized Property Marketplace.
Includes profiles and roles, verification requests, property listings and the token ledger.
"""

from marketplace.models.user import User, UserRoleAssignment, UserMode, AppRole
from marketplace.models.verification import (
    VerificationRequest,
    VerificationKind,
    VerificationStatus,
    VERIFICATION_TRANSITIONS,
)
from marketplace.models.property import Property, PropertyType, PropertyStatus, PROPERTY_TRANSITIONS
from marketplace.models.token import TokenIssuance, TokenPurchase

# Export all models for easy importing
__all__ = [
    "User",
    "UserRoleAssignment",
    "UserMode",
    "AppRole",
    "VerificationRequest",
    "VerificationKind",
    "VerificationStatus",
    "VERIFICATION_TRANSITIONS",
    "Property",
    "PropertyType",
    "PropertyStatus",
    "PROPERTY_TRANSITIONS",
    "TokenIssuance",
    "TokenPurchase",
]
