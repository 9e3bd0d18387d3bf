"""
Service layer for business logic implementation.
Contains the verification, listing and token workflows, derived portfolio
values, storage and error handling.
"""

from .auth import AuthService
from .auto_approval import AutoApprovalScheduler
from .verification import VerificationService
from .property import PropertyService
from .token import TokenService
from .portfolio import PortfolioService
from .storage import StorageService, Bucket
from .error_handler import ErrorHandlerService

__all__ = [
    "AuthService",
    "AutoApprovalScheduler",
    "VerificationService",
    "PropertyService",
    "TokenService",
    "PortfolioService",
    "StorageService",
    "Bucket",
    "ErrorHandlerService",
]
