"""
Error response schemas for API documentation and consistent error formatting.
Provides standardized error response models for OpenAPI documentation.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Any, Dict


class ErrorDetail(BaseModel):
    """Schema for individual error detail."""

    field: Optional[str] = Field(None, description="Field name that caused the error", examples=["tokens"])
    message: str = Field(..., description="Human-readable error message", examples=["Must be between 1 and 9850"])
    type: Optional[str] = Field(None, description="Error type identifier", examples=["range_error"])
    input: Optional[Any] = Field(None, description="Input value that caused the error")


class ErrorResponse(BaseModel):
    """Schema for standardized error responses."""

    code: str = Field(..., description="Error code identifier", examples=["TOKEN_RANGE_ERROR"])
    message: str = Field(..., description="Human-readable error message")
    timestamp: str = Field(..., description="Error timestamp in ISO format", examples=["2024-01-01T00:00:00Z"])
    request_id: Optional[str] = Field(None, description="Unique request identifier for tracking", examples=["abc12345"])
    details: Optional[List[ErrorDetail]] = Field(None, description="Detailed error information for validation errors")


class APIErrorResponse(BaseModel):
    """Schema for API error response wrapper."""

    error: ErrorResponse = Field(..., description="Error information")


# (description, example code, example message) per status code
_ERROR_EXAMPLES = {
    400: ("Bad Request - Invalid state transition or parameters", "INVALID_PROPERTY_TRANSITION",
          "Cannot move listing from 'draft' to 'approved'"),
    401: ("Unauthorized - Authentication required", "UNAUTHORIZED", "Authentication required"),
    403: ("Forbidden - Insufficient permissions or verification missing", "VERIFICATION_REQUIRED",
          "Approved identity verification required to submit a listing"),
    404: ("Not Found - Resource does not exist", "NOT_FOUND", "Property not found"),
    409: ("Conflict - Resource already exists", "DUPLICATE_ISSUANCE",
          "Tokens have already been issued for property"),
    422: ("Unprocessable Entity - Validation failed", "VALIDATION_ERROR", "Request validation failed"),
    429: ("Too Many Requests - Rate limit exceeded", "RATE_LIMIT_EXCEEDED", "Rate limit exceeded"),
    500: ("Internal Server Error", "INTERNAL_SERVER_ERROR", "An unexpected error occurred. Please try again later."),
}

COMMON_ERROR_RESPONSES: Dict[int, Dict[str, Any]] = {
    status_code: {
        "description": description,
        "model": APIErrorResponse,
        "content": {
            "application/json": {
                "example": {
                    "error": {
                        "code": code,
                        "message": message,
                        "timestamp": "2024-01-01T00:00:00Z",
                        "request_id": "abc12345"
                    }
                }
            }
        }
    }
    for status_code, (description, code, message) in _ERROR_EXAMPLES.items()
}


def get_error_responses(*status_codes: int) -> Dict[int, Dict[str, Any]]:
    """
    Get error response schemas for specific status codes.

    Args:
        status_codes: HTTP status codes to include

    Returns:
        Dictionary of error response schemas
    """
    return {
        code: COMMON_ERROR_RESPONSES[code]
        for code in status_codes
        if code in COMMON_ERROR_RESPONSES
    }


def get_common_error_responses() -> Dict[int, Dict[str, Any]]:
    """Get common error response schemas for most endpoints."""
    return get_error_responses(400, 401, 403, 404, 422, 500)


def get_crud_error_responses() -> Dict[int, Dict[str, Any]]:
    """Get error response schemas for create/update operations."""
    return get_error_responses(400, 401, 403, 404, 409, 422, 500)
