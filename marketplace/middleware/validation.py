"""
Request preprocessing middleware.
Assigns request ids, enforces body size and per-client rate limits, and
rejects malformed pagination parameters before they reach the routers.
"""

from typing import Callable, Dict, List
from collections import deque
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
import logging
import time
import uuid

from marketplace.services.error_handler import ErrorHandlerService
from marketplace.utils.exceptions import APIException, BadRequestError, RateLimitExceededError

logger = logging.getLogger(__name__)

JSON_METHODS = ("POST", "PUT", "PATCH")
ACCEPTED_BODY_TYPES = ("application/json", "multipart/form-data", "application/x-www-form-urlencoded")


class ValidationMiddleware(BaseHTTPMiddleware):
    """
    Request id, size limit, optional rate limiting and access logging.

    The request id is stored on ``request.state`` so error responses
    produced further down carry the same id as the ``X-Request-ID`` header.
    """

    def __init__(
        self,
        app: ASGIApp,
        max_request_size: int = 10 * 1024 * 1024,
        enable_request_logging: bool = True,
        enable_rate_limiting: bool = False,
        rate_limit_requests: int = 100,
        rate_limit_window: int = 60
    ):
        super().__init__(app)
        self.max_request_size = max_request_size
        self.enable_request_logging = enable_request_logging
        self.enable_rate_limiting = enable_rate_limiting
        self.rate_limit_requests = rate_limit_requests
        self.rate_limit_window = rate_limit_window
        # client ip -> timestamps of requests inside the current window
        self.request_log: Dict[str, deque] = {}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())[:8]
        request.state.request_id = request_id
        start_time = time.time()

        try:
            self._check_request_size(request)
            self._check_content_type(request)
            if self.enable_rate_limiting:
                self._check_rate_limit(request)
        except APIException as exc:
            response = ErrorHandlerService.handle_api_exception(exc, request)
            response.headers["X-Request-ID"] = request_id
            return response

        if self.enable_request_logging:
            logger.info(
                f"Request [{request_id}]: {request.method} {request.url.path}",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "client_ip": self._client_ip(request)
                }
            )

        response = await call_next(request)

        processing_time = time.time() - start_time
        if self.enable_request_logging:
            logger.info(
                f"Response [{request_id}]: {response.status_code} - {processing_time:.3f}s",
                extra={
                    "request_id": request_id,
                    "status_code": response.status_code,
                    "processing_time": processing_time,
                    "path": request.url.path
                }
            )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Processing-Time"] = f"{processing_time:.3f}"
        return response

    def _check_request_size(self, request: Request) -> None:
        content_length = request.headers.get("content-length")
        if not content_length:
            return
        try:
            size = int(content_length)
        except ValueError:
            raise BadRequestError("Invalid content-length header")
        if size > self.max_request_size:
            raise BadRequestError(
                f"Request size {size} bytes exceeds maximum allowed size {self.max_request_size} bytes",
                error_code="REQUEST_TOO_LARGE"
            )

    def _check_content_type(self, request: Request) -> None:
        if request.method not in JSON_METHODS:
            return
        content_type = request.headers.get("content-type", "")
        # Body-less POSTs (approve, submit-draft) send no content type
        if content_type and not content_type.startswith(ACCEPTED_BODY_TYPES):
            raise BadRequestError(
                f"Unsupported content type '{content_type}'. Expected 'application/json'",
                error_code="UNSUPPORTED_CONTENT_TYPE"
            )

    def _check_rate_limit(self, request: Request) -> None:
        """Sliding window per client ip."""
        client_ip = self._client_ip(request)
        now = time.time()
        self._evict_stale_clients(now)
        window = self.request_log.setdefault(client_ip, deque())

        while window and now - window[0] > self.rate_limit_window:
            window.popleft()

        if len(window) >= self.rate_limit_requests:
            retry_after = max(1, int(self.rate_limit_window - (now - window[0])))
            logger.warning(f"Rate limit exceeded for {client_ip}")
            raise RateLimitExceededError(retry_after)

        window.append(now)

    def _evict_stale_clients(self, now: float) -> None:
        """Forget clients whose newest request fell out of the window."""
        stale = [
            ip for ip, window in self.request_log.items()
            if not window or now - window[-1] > self.rate_limit_window
        ]
        for client_ip in stale:
            del self.request_log[client_ip]

    @staticmethod
    def _client_ip(request: Request) -> str:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip
        return request.client.host if request.client else "unknown"


class RequestValidationMiddleware(BaseHTTPMiddleware):
    """Rejects oversized or non-numeric pagination query parameters."""

    PAGINATION_PARAMS: List[str] = ["page", "page_size", "skip", "limit"]

    def __init__(self, app: ASGIApp, max_page_size: int = 100, max_param_length: int = 1000):
        super().__init__(app)
        self.max_page_size = max_page_size
        self.max_param_length = max_param_length

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            self._validate_query_parameters(request)
        except BadRequestError as exc:
            return ErrorHandlerService.handle_api_exception(exc, request)
        return await call_next(request)

    def _validate_query_parameters(self, request: Request) -> None:
        for key, value in request.query_params.items():
            if len(value) > self.max_param_length:
                raise BadRequestError(f"Query parameter '{key}' exceeds maximum length")

            if key not in self.PAGINATION_PARAMS:
                continue
            try:
                int_value = int(value)
            except ValueError:
                raise BadRequestError(f"Parameter '{key}' must be a valid integer")
            if int_value < 0:
                raise BadRequestError(f"Parameter '{key}' must be non-negative")
            if key in ("page_size", "limit") and int_value > self.max_page_size:
                raise BadRequestError(f"Parameter '{key}' exceeds maximum value of {self.max_page_size}")
