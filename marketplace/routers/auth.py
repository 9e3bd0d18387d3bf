"""
Authentication API endpoints for sign-up, login, token management and the current user.
Provides JWT-based authentication; roles are resolved from the database on each request.
"""

from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPAuthorizationCredentials
from typing import Optional
from marketplace.models.user import User
from marketplace.services.auth import AuthService
from marketplace.schemas.auth import (
    LoginRequest,
    LoginResponse,
    RefreshTokenRequest,
    AccessTokenResponse,
    TokenValidationResponse
)
from marketplace.schemas.user import UserCreate, UserResponse
from marketplace.schemas.error import get_error_responses
from marketplace.utils.dependencies import (
    get_auth_service,
    get_current_active_user,
    security
)
from marketplace.utils.exceptions import APIException, UnauthorizedError
from marketplace.config import settings
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _login_response(user: User, access_token: str, refresh_token: str) -> LoginResponse:
    return LoginResponse(
        user=UserResponse.model_validate(user.to_dict()),
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        expires_in=settings.access_token_expire_minutes * 60
    )


@router.post(
    "/signup",
    response_model=LoginResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
    description="Register with email and password. The new account holds the 'user' role and is signed in.",
    responses=get_error_responses(409, 422)
)
async def signup(
    user_data: UserCreate,
    auth_service: AuthService = Depends(get_auth_service)
) -> LoginResponse:
    user = await auth_service.signup(user_data)
    access_token, refresh_token = auth_service.create_tokens(user)
    return _login_response(user, access_token, refresh_token)


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    summary="User login",
    description="Authenticate user with email and password, returns JWT tokens",
    responses=get_error_responses(401, 422)
)
async def login(
    login_data: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service)
) -> LoginResponse:
    """
    Authenticate user and return JWT tokens.

    Raises:
        InvalidCredentialsError: If credentials are invalid
        InactiveUserError: If user account is inactive
    """
    user, access_token, refresh_token = await auth_service.login(
        email=login_data.email,
        password=login_data.password
    )
    return _login_response(user, access_token, refresh_token)


@router.post(
    "/refresh",
    response_model=AccessTokenResponse,
    status_code=status.HTTP_200_OK,
    summary="Refresh access token",
    description="Generate new access token using refresh token",
    responses=get_error_responses(401)
)
async def refresh_token(
    refresh_data: RefreshTokenRequest,
    auth_service: AuthService = Depends(get_auth_service)
) -> AccessTokenResponse:
    access_token = await auth_service.refresh_access_token(refresh_token=refresh_data.refresh_token)

    return AccessTokenResponse(
        access_token=access_token,
        token_type="bearer",
        expires_in=settings.access_token_expire_minutes * 60
    )


@router.get(
    "/me",
    response_model=UserResponse,
    status_code=status.HTTP_200_OK,
    summary="Get current user",
    description="Get the authenticated user's profile and roles",
    responses=get_error_responses(401)
)
async def get_current_user_info(
    current_user: User = Depends(get_current_active_user)
) -> UserResponse:
    return UserResponse.model_validate(current_user.to_dict())


@router.post(
    "/validate",
    response_model=TokenValidationResponse,
    status_code=status.HTTP_200_OK,
    summary="Validate token",
    description="Check an access token; never fails, returns valid=false instead"
)
async def validate_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> TokenValidationResponse:
    if not credentials:
        return TokenValidationResponse(valid=False)

    try:
        payload = auth_service.decode_token(credentials.credentials, "access")
        user = await auth_service.get_current_user(credentials.credentials)
    except APIException as e:
        logger.debug(f"Token validation failed: {e.detail}")
        return TokenValidationResponse(valid=False)

    return TokenValidationResponse(
        valid=True,
        user_id=str(user.id),
        email=user.email,
        roles=sorted(user.roles, key=lambda role: role.value),
        expires_at=payload.exp
    )


@router.post(
    "/logout",
    status_code=status.HTTP_200_OK,
    summary="User logout",
    description="Stateless logout; the client discards its tokens"
)
async def logout(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> dict:
    if not credentials:
        raise UnauthorizedError("Authentication token required")

    return {"message": "Successfully logged out"}
