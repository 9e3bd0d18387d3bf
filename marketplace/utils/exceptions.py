"""
Custom exception classes for the Tokenized Property Marketplace.
Provides structured error handling with appropriate HTTP status codes.
"""

from typing import Any, Dict, Optional, List
from fastapi import HTTPException, status


class APIException(HTTPException):
    """Base API exception class."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class ValidationError(APIException):
    """Validation error exception."""

    def __init__(
        self,
        detail: str,
        field_errors: Optional[List[Dict[str, str]]] = None,
        error_code: str = "VALIDATION_ERROR"
    ):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code=error_code
        )
        self.field_errors = field_errors or []


class NotFoundError(APIException):
    """Resource not found exception."""

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        detail = f"{resource} not found"
        if resource_id:
            detail += f" with ID: {resource_id}"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code="NOT_FOUND"
        )


class UnauthorizedError(APIException):
    """Authentication required exception."""

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="UNAUTHORIZED",
            headers={"WWW-Authenticate": "Bearer"}
        )


class ForbiddenError(APIException):
    """Access forbidden exception."""

    def __init__(self, detail: str = "Access forbidden", error_code: str = "FORBIDDEN"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code=error_code
        )


class ConflictError(APIException):
    """Resource conflict exception."""

    def __init__(self, detail: str, error_code: str = "CONFLICT"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code=error_code
        )


class BadRequestError(APIException):
    """Bad request exception."""

    def __init__(self, detail: str, error_code: str = "BAD_REQUEST"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code=error_code
        )


# Authentication specific exceptions
class InvalidCredentialsError(UnauthorizedError):
    """Invalid login credentials exception."""

    def __init__(self, detail: str = "Invalid email or password"):
        super().__init__(detail)


class InvalidTokenError(UnauthorizedError):
    """Invalid JWT token exception."""

    def __init__(self, detail: str = "Invalid token"):
        super().__init__(detail)


class InactiveUserError(ForbiddenError):
    """Inactive user account exception."""

    def __init__(self, detail: str = "User account is inactive"):
        super().__init__(detail)


class InsufficientPermissionsError(ForbiddenError):
    def __init__(self, action: str):
        super().__init__(f"Insufficient permissions to {action}", error_code="INSUFFICIENT_PERMISSIONS")


# Verification specific exceptions
class VerificationNotFoundError(NotFoundError):
    def __init__(self, request_id: str):
        super().__init__("Verification request", request_id)


class VerificationStatusError(BadRequestError):
    """Transition not allowed by the verification state machine."""

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot move verification from '{current}' to '{target}'",
            error_code="INVALID_VERIFICATION_TRANSITION"
        )


class VerificationInProgressError(ConflictError):
    """The subject already has a pending or approved request."""

    def __init__(self, current: str):
        super().__init__(
            f"A verification request is already {current}",
            error_code="VERIFICATION_EXISTS"
        )


class VerificationRequiredError(ForbiddenError):
    """Owner has no approved verification."""

    def __init__(self, detail: str = "Approved identity verification required to submit a listing"):
        super().__init__(detail, error_code="VERIFICATION_REQUIRED")


# Property specific exceptions
class PropertyNotFoundError(NotFoundError):
    """Property not found exception."""

    def __init__(self, property_id: str):
        super().__init__("Property", property_id)


class PropertyOwnershipError(ForbiddenError):
    """Caller is neither the listing owner nor an admin."""

    def __init__(self, detail: str = "You don't own this property"):
        super().__init__(detail, error_code="NOT_PROPERTY_OWNER")


class PropertyStatusError(BadRequestError):
    """Transition or edit not allowed in the listing's current status."""

    def __init__(self, detail: str):
        super().__init__(detail, error_code="INVALID_PROPERTY_TRANSITION")


# Token specific exceptions
class DuplicateIssuanceError(ConflictError):
    """Tokens were already issued for the property."""

    def __init__(self, property_id: str):
        super().__init__(
            f"Tokens have already been issued for property {property_id}",
            error_code="DUPLICATE_ISSUANCE"
        )


class TokenRangeError(ValidationError):
    """Requested token count outside 1..available."""

    def __init__(self, requested: int, available: int):
        super().__init__(
            f"Requested {requested} tokens but only {available} are available",
            field_errors=[{
                "field": "tokens",
                "message": f"Must be between 1 and {available}",
                "type": "range_error"
            }],
            error_code="TOKEN_RANGE_ERROR"
        )
        self.requested = requested
        self.available = available


class InsufficientFundsError(ValidationError):
    """Purchase total exceeds the buyer's wallet balance."""

    def __init__(self, required: str, balance: str):
        super().__init__(
            f"Insufficient funds: purchase requires {required}, balance is {balance}",
            error_code="INSUFFICIENT_FUNDS"
        )


# File upload exceptions
class FileUploadError(BadRequestError):
    """Stored object could not be written."""

    def __init__(self, detail: str):
        super().__init__(f"Could not store file: {detail}", error_code="FILE_UPLOAD_ERROR")


class UnsupportedFileTypeError(BadRequestError):
    """MIME type not accepted by the target bucket."""

    def __init__(self, file_type: str, supported_types: List[str]):
        super().__init__(
            f"Unsupported file type '{file_type}'. Supported types: {', '.join(supported_types)}",
            error_code="UNSUPPORTED_FILE_TYPE"
        )


class FileSizeExceededError(BadRequestError):
    def __init__(self, size: int, max_size: int):
        super().__init__(
            f"File size {size} bytes exceeds maximum allowed size {max_size} bytes",
            error_code="FILE_TOO_LARGE"
        )


# Rate limiting exceptions
class RateLimitExceededError(APIException):
    """Rate limit exceeded exception."""

    def __init__(self, retry_after: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded",
            error_code="RATE_LIMIT_EXCEEDED",
            headers={"Retry-After": str(retry_after)}
        )
