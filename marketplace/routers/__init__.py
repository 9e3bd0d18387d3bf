"""
API route handlers for the marketplace API.
One router per resource; all are mounted under the API prefix.
"""

from .auth import router as auth_router
from .users import router as users_router
from .verifications import router as verifications_router
from .properties import router as properties_router
from .purchases import router as purchases_router
from .portfolio import router as portfolio_router
from .storage import router as storage_router

__all__ = [
    "auth_router",
    "users_router",
    "verifications_router",
    "properties_router",
    "purchases_router",
    "portfolio_router",
    "storage_router",
]
