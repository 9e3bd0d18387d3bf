"""
FastAPI dependency injection utilities for authentication and database sessions.
Provides reusable dependencies for route protection and service construction.
"""

from typing import Optional
import uuid
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from marketplace.config import settings
from marketplace.database import get_db, AsyncSessionLocal
from marketplace.models.user import User
from marketplace.services.auth import AuthService
from marketplace.services.auto_approval import AutoApprovalScheduler
from marketplace.services.verification import VerificationService
from marketplace.services.property import PropertyService
from marketplace.services.token import TokenService
from marketplace.services.portfolio import PortfolioService
from marketplace.services.storage import StorageService
from marketplace.utils.exceptions import (
    UnauthorizedError,
    InactiveUserError,
    InsufficientPermissionsError,
    ValidationError
)


# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


def get_auto_approval_scheduler(request: Request) -> AutoApprovalScheduler:
    """
    Scheduler created by the application lifespan.

    Falls back to a scheduler on the default session factory when the app was
    started without its lifespan (e.g. a bare ASGI transport).
    """
    scheduler = getattr(request.app.state, "auto_approval", None)
    if scheduler is None:
        scheduler = AutoApprovalScheduler(
            AsyncSessionLocal,
            delay_seconds=settings.kyc_auto_approve_delay_seconds,
            enabled=settings.kyc_auto_approve
        )
        request.app.state.auto_approval = scheduler
    return scheduler


async def get_auth_service(db: AsyncSession = Depends(get_db)) -> AuthService:
    return AuthService(db)


async def get_verification_service(
    db: AsyncSession = Depends(get_db),
    scheduler: AutoApprovalScheduler = Depends(get_auto_approval_scheduler)
) -> VerificationService:
    return VerificationService(db, scheduler)


async def get_property_service(db: AsyncSession = Depends(get_db)) -> PropertyService:
    return PropertyService(db)


async def get_token_service(db: AsyncSession = Depends(get_db)) -> TokenService:
    return TokenService(db)


async def get_portfolio_service(db: AsyncSession = Depends(get_db)) -> PortfolioService:
    return PortfolioService(db)


def get_storage_service() -> StorageService:
    return StorageService()


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> User:
    """
    Get current authenticated user from JWT token.

    Raises:
        UnauthorizedError: If no token provided
        InvalidTokenError: If the token is invalid, expired or its user is gone
        InactiveUserError: If user account is inactive
    """
    if not credentials:
        raise UnauthorizedError("Authentication token required")

    return await auth_service.get_current_user(credentials.credentials)


async def get_current_active_user(
    current_user: User = Depends(get_current_user)
) -> User:
    if not current_user.is_active:
        raise InactiveUserError()

    return current_user


async def get_current_admin_user(
    current_user: User = Depends(get_current_active_user)
) -> User:
    """
    Get current user with the admin role.

    Roles are read from the database, not from the token claims, so a revoked
    admin loses access immediately.

    Raises:
        InsufficientPermissionsError: If user is not an admin
    """
    if not current_user.is_admin:
        raise InsufficientPermissionsError("access admin resources")

    return current_user


def parse_uuid(value: str, field: str = "id") -> uuid.UUID:
    """Parse a path or body identifier, raising a 422 on malformed input."""
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ValidationError(
            f"Invalid {field} format",
            field_errors=[{"field": field, "message": "Must be a valid UUID", "type": "uuid_parsing"}]
        )
