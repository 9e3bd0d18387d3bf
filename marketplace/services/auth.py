"""
Authentication service for sign-up, login, token management, and role administration.
Handles JWT token generation, validation, user authentication flows, and business rule validation.
"""

from typing import List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from marketplace.config import settings
from marketplace.repositories.user import UserRepository
from marketplace.models.user import User, AppRole, UserMode
from marketplace.schemas.user import UserCreate
from marketplace.utils.auth import (
    create_access_token,
    create_refresh_token,
    verify_token,
    TokenPayload
)
from marketplace.utils.exceptions import (
    InvalidCredentialsError,
    InvalidTokenError,
    InactiveUserError,
    NotFoundError,
    ForbiddenError,
    ValidationError,
    ConflictError,
)
from jose import JWTError, ExpiredSignatureError
import uuid
import logging

logger = logging.getLogger(__name__)


class AuthService:
    """
    Authentication service for managing users, sessions and roles.
    Every caller passes the authenticated User explicitly; nothing here reads ambient session state.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.user_repo = UserRepository(db_session)

    async def signup(self, user_data: UserCreate) -> User:
        """
        Register a new account.

        Every account gets the ``user`` role; addresses listed in ADMIN_EMAILS
        are also granted ``admin``.

        Raises:
            ConflictError: If the email is already registered
            ValidationError: If user data is invalid
        """
        if await self.user_repo.get_by_email(user_data.email):
            raise ConflictError(f"Email {user_data.email} is already registered", error_code="EMAIL_TAKEN")

        roles = [AppRole.USER]
        if user_data.email.lower() in settings.admin_emails:
            roles.append(AppRole.ADMIN)

        try:
            user = await self.user_repo.create_user(user_data.model_dump(), roles=roles)
        except ValueError as e:
            raise ValidationError(str(e))

        logger.info(f"User signed up: {user.email} (ID: {user.id}, roles: {sorted(r.value for r in roles)})")
        return user

    async def authenticate_user(self, email: str, password: str) -> User:
        """
        Authenticate user with email and password.

        Raises:
            InvalidCredentialsError: If credentials are invalid
            ValidationError: If input validation fails
        """
        if not email or not email.strip():
            raise ValidationError("Email is required")

        if not password or not password.strip():
            raise ValidationError("Password is required")

        user = await self.user_repo.authenticate_user(email, password)

        if not user:
            logger.warning(f"Failed authentication attempt for email: {email}")
            raise InvalidCredentialsError()

        logger.info(f"User authenticated successfully: {user.email}")
        return user

    def create_tokens(self, user: User) -> Tuple[str, str]:
        """
        Create access and refresh tokens for user.

        Returns:
            Tuple of (access_token, refresh_token)
        """
        access_token = create_access_token(user_id=user.id, email=user.email, roles=user.roles)
        refresh_token = create_refresh_token(user_id=user.id, email=user.email)
        return access_token, refresh_token

    async def login(self, email: str, password: str) -> Tuple[User, str, str]:
        """
        Authenticate user and create tokens.

        Returns:
            Tuple of (user, access_token, refresh_token)
        """
        user = await self.authenticate_user(email, password)
        access_token, refresh_token = self.create_tokens(user)
        return user, access_token, refresh_token

    def decode_token(self, token: str, token_type: str = "access") -> TokenPayload:
        """
        Decode a token, mapping jose errors onto API errors.

        Raises:
            InvalidTokenError: If the token is invalid or expired
        """
        try:
            return verify_token(token, token_type=token_type)
        except ExpiredSignatureError:
            raise InvalidTokenError("Token has expired")
        except JWTError as e:
            raise InvalidTokenError(str(e))

    async def refresh_access_token(self, refresh_token: str) -> str:
        """
        Create new access token from refresh token.

        Raises:
            InvalidTokenError: If refresh token is invalid or expired
            InactiveUserError: If user account is inactive
        """
        token_payload = self.decode_token(refresh_token, token_type="refresh")
        user = await self._user_from_payload(token_payload)

        return create_access_token(user_id=user.id, email=user.email, roles=user.roles)

    async def get_current_user(self, token: str) -> User:
        """
        Resolve the user behind an access token.

        Raises:
            InvalidTokenError: If token is invalid, expired, or its user is gone
            InactiveUserError: If user account is inactive
        """
        token_payload = self.decode_token(token, token_type="access")
        return await self._user_from_payload(token_payload)

    async def _user_from_payload(self, token_payload: TokenPayload) -> User:
        try:
            user_id = uuid.UUID(token_payload.user_id)
        except ValueError:
            raise InvalidTokenError("Invalid token subject")

        user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise InvalidTokenError("Token user no longer exists")

        if not user.is_active:
            raise InactiveUserError()

        return user

    async def get_user_by_id(self, user_id: uuid.UUID) -> User:
        """
        Get user by ID.

        Raises:
            NotFoundError: If user not found
        """
        user = await self.user_repo.get_by_id(user_id)

        if not user:
            raise NotFoundError("User", str(user_id))

        return user

    async def has_role(self, user_id: uuid.UUID, role: AppRole) -> bool:
        return await self.user_repo.has_role(user_id, role)

    async def set_mode(self, user: User, mode: UserMode) -> User:
        """Switch dashboard mode. A preference only; grants no permissions."""
        return await self.user_repo.set_mode(user, mode)

    async def grant_role(self, user_id: uuid.UUID, role: AppRole, current_user: User) -> User:
        """
        Grant a role to another user. Admin only (enforced by the route dependency).

        Raises:
            NotFoundError: If target user doesn't exist
        """
        target_user = await self.get_user_by_id(user_id)
        updated_user = await self.user_repo.grant_role(target_user, role)
        logger.info(f"Role {role.value} granted to {updated_user.email} by {current_user.email}")
        return updated_user

    async def revoke_role(self, user_id: uuid.UUID, role: AppRole, current_user: User) -> User:
        """
        Revoke a role from a user.

        Raises:
            NotFoundError: If target user doesn't exist
            ForbiddenError: If an admin tries to drop their own admin role or the base user role
        """
        target_user = await self.get_user_by_id(user_id)

        if role == AppRole.USER:
            raise ForbiddenError("The base user role cannot be revoked")

        if role == AppRole.ADMIN and target_user.id == current_user.id:
            raise ForbiddenError("Admins cannot revoke their own admin role")

        updated_user = await self.user_repo.revoke_role(target_user, role)
        logger.info(f"Role {role.value} revoked from {updated_user.email} by {current_user.email}")
        return updated_user

    async def update_user_status(self, user_id: uuid.UUID, is_active: bool, current_user: User) -> User:
        """
        Activate or deactivate an account.

        Raises:
            ForbiddenError: If an admin tries to deactivate themselves
        """
        target_user = await self.get_user_by_id(user_id)

        if target_user.id == current_user.id and not is_active:
            raise ForbiddenError("Users cannot deactivate their own account")

        return await self.user_repo.update_user_status(target_user, is_active)

    async def list_users(
        self,
        role: Optional[AppRole] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[User], int]:
        return await self.user_repo.list_users(role=role, skip=(page - 1) * page_size, limit=page_size)
