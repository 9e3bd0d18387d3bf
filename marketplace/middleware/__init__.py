"""
Middleware package for the marketplace API.
"""

from .validation import ValidationMiddleware, RequestValidationMiddleware

__all__ = [
    "ValidationMiddleware",
    "RequestValidationMiddleware",
]
