"""
Error response formatting and logging.

Every error leaving the API has the body
``{"error": {code, message, timestamp, request_id, details?}}`` so clients can
branch on ``code`` and quote ``request_id`` when reporting a problem.
"""

from typing import Dict, Any, Optional, List, Sequence
from datetime import datetime, timezone
from fastapi import Request, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from marketplace.utils.exceptions import APIException, ValidationError
import logging
import uuid

logger = logging.getLogger(__name__)


# Named constraints mapped to messages a client can act on
CONSTRAINT_MESSAGES = {
    "ck_property_tokens_available_non_negative": "Not enough tokens available",
    "ck_property_tokens_available_le_total": "Available tokens cannot exceed the issued supply",
    "ck_property_tokens_total_positive": "Token supply must be positive",
    "ck_property_tokens_price_positive": "Token price must be positive",
    "ck_token_purchases_tokens_positive": "Purchase amount must be positive",
    "uq_user_roles_user_role": "Role already granted",
    "property_tokens.property_id": "Tokens have already been issued for this property",
    "users.email": "Email address is already registered",
}


class ErrorHandlerService:
    """Builds the uniform error body for each kind of failure."""

    @staticmethod
    def format_error_response(
        error_code: str,
        message: str,
        details: Optional[List[Dict[str, Any]]] = None,
        request_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Format an error body.

        Args:
            error_code: Machine-readable code, e.g. ``TOKEN_RANGE_ERROR``
            message: Human-readable message
            details: Optional per-field errors
            request_id: Identifier echoed in the ``X-Request-ID`` header
        """
        error = {
            "code": error_code,
            "message": message,
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
        }
        if details:
            error["details"] = details
        if request_id:
            error["request_id"] = request_id
        return jsonable_encoder({"error": error})

    @staticmethod
    def handle_api_exception(
        exception: APIException,
        request: Optional[Request] = None
    ) -> JSONResponse:
        """Domain errors raised by services and dependencies."""
        request_id = ErrorHandlerService._request_id(request)
        code = exception.error_code or "API_ERROR"

        logger.warning(
            f"{code} [{request_id}]: {exception.detail}",
            extra=ErrorHandlerService._log_context(request, request_id, error_code=code,
                                                  status_code=exception.status_code)
        )

        details = exception.field_errors if isinstance(exception, ValidationError) else None
        return JSONResponse(
            status_code=exception.status_code,
            content=ErrorHandlerService.format_error_response(code, exception.detail, details, request_id),
            headers=exception.headers
        )

    @staticmethod
    def handle_validation_error(
        errors: Sequence[Dict[str, Any]],
        request: Optional[Request] = None
    ) -> JSONResponse:
        """
        Request body, query or path values that failed schema validation.

        ``errors`` is ``exc.errors()``; nested locations are joined with `` -> ``.
        """
        request_id = ErrorHandlerService._request_id(request)

        details = [
            {
                "field": " -> ".join(str(loc) for loc in error.get("loc", ())),
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type"),
                "input": error.get("input"),
            }
            for error in errors
        ]

        logger.warning(
            f"VALIDATION_ERROR [{request_id}]: {len(details)} field error(s)",
            extra=ErrorHandlerService._log_context(request, request_id, error_count=len(details))
        )

        return JSONResponse(
            status_code=422,
            content=ErrorHandlerService.format_error_response(
                "VALIDATION_ERROR", "Request validation failed", details, request_id
            )
        )

    @staticmethod
    def handle_database_error(
        exception: SQLAlchemyError,
        request: Optional[Request] = None
    ) -> JSONResponse:
        """
        Database failures. Constraint violations become 409 with a readable
        message; anything else is a 500 without driver details.
        """
        request_id = ErrorHandlerService._request_id(request)

        if isinstance(exception, IntegrityError):
            code, status_code = "INTEGRITY_ERROR", 409
            message = ErrorHandlerService._constraint_message(exception)
        else:
            code, status_code = "DATABASE_ERROR", 500
            message = "Database operation failed"

        logger.error(
            f"{code} [{request_id}]: {exception}",
            extra=ErrorHandlerService._log_context(request, request_id, error_code=code,
                                                  exception_type=type(exception).__name__),
            exc_info=True
        )

        return JSONResponse(
            status_code=status_code,
            content=ErrorHandlerService.format_error_response(code, message, request_id=request_id)
        )

    @staticmethod
    def handle_http_exception(
        exception: HTTPException,
        request: Optional[Request] = None
    ) -> JSONResponse:
        """Framework-level errors such as unknown routes or wrong methods."""
        request_id = ErrorHandlerService._request_id(request)
        code = f"HTTP_{exception.status_code}"

        logger.info(
            f"{code} [{request_id}]: {exception.detail}",
            extra=ErrorHandlerService._log_context(request, request_id, status_code=exception.status_code)
        )

        return JSONResponse(
            status_code=exception.status_code,
            content=ErrorHandlerService.format_error_response(code, str(exception.detail), request_id=request_id),
            headers=getattr(exception, "headers", None)
        )

    @staticmethod
    def handle_unexpected_error(
        exception: Exception,
        request: Optional[Request] = None
    ) -> JSONResponse:
        request_id = ErrorHandlerService._request_id(request)

        logger.error(
            f"Unhandled {type(exception).__name__} [{request_id}]: {exception}",
            extra=ErrorHandlerService._log_context(request, request_id,
                                                  exception_type=type(exception).__name__),
            exc_info=True
        )

        return JSONResponse(
            status_code=500,
            content=ErrorHandlerService.format_error_response(
                "INTERNAL_SERVER_ERROR",
                "An unexpected error occurred. Please try again later.",
                request_id=request_id
            )
        )

    @staticmethod
    def _request_id(request: Optional[Request]) -> str:
        """Request id set by the validation middleware, or a fresh one."""
        if request is not None:
            request_id = getattr(request.state, "request_id", None)
            if request_id:
                return request_id
        return str(uuid.uuid4())[:8]

    @staticmethod
    def _log_context(request: Optional[Request], request_id: str, **fields) -> Dict[str, Any]:
        context = {
            "request_id": request_id,
            "method": request.method if request else None,
            "path": request.url.path if request else None,
        }
        context.update(fields)
        return context

    @staticmethod
    def _constraint_message(exception: IntegrityError) -> str:
        error_msg = str(exception.orig).lower()

        for marker, message in CONSTRAINT_MESSAGES.items():
            if marker in error_msg:
                return message

        if "unique" in error_msg or "duplicate" in error_msg:
            return "Duplicate value for unique field"
        if "foreign key" in error_msg:
            return "Referenced record does not exist"
        if "not null" in error_msg:
            return "Required field cannot be empty"
        return "Data integrity constraint violation"
