"""
Authentication utilities for JWT token management.
Provides JWT token generation, validation, and role claims.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, Iterable, List
from jose import JWTError, jwt
from marketplace.config import settings
from marketplace.models.user import AppRole
import uuid


class TokenPayload:
    """JWT token payload structure."""

    def __init__(self, user_id: str, email: str, roles: List[str], exp: datetime, token_type: str):
        self.user_id = user_id
        self.email = email
        self.roles = roles
        self.exp = exp
        self.token_type = token_type

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenPayload":
        """Create TokenPayload from dictionary."""
        return cls(
            user_id=data["sub"],
            email=data["email"],
            roles=list(data.get("roles", [])),  # Roles are omitted from refresh tokens
            exp=datetime.fromtimestamp(data["exp"], tz=timezone.utc),
            token_type=data.get("type", "access")
        )


def _encode(claims: Dict[str, Any], expire: datetime) -> str:
    to_encode = {
        **claims,
        "exp": expire,
        "iat": datetime.now(timezone.utc),
        # Unique id so two tokens minted in the same second still differ
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(
    user_id: uuid.UUID,
    email: str,
    roles: Iterable[AppRole],
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create JWT access token with user claims.

    Args:
        user_id: User's UUID
        email: User's email address
        roles: Roles held at issue time (informational; authorization re-reads user_roles)
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )

    return _encode(
        {
            "sub": str(user_id),
            "email": email,
            "roles": sorted(role.value for role in roles),
            "type": "access",
        },
        expire
    )


def create_refresh_token(
    user_id: uuid.UUID,
    email: str,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create JWT refresh token.

    Args:
        user_id: User's UUID
        email: User's email address
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT refresh token string
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(days=settings.jwt_refresh_token_expire_days)
    )

    return _encode({"sub": str(user_id), "email": email, "type": "refresh"}, expire)


def verify_token(token: str, token_type: str = "access") -> TokenPayload:
    """
    Verify and decode JWT token.

    Args:
        token: JWT token string
        token_type: Expected token type ("access" or "refresh")

    Returns:
        TokenPayload if valid

    Raises:
        JWTError: If token is invalid, expired or of the wrong type
    """
    # jose validates the signature and the exp claim
    payload = jwt.decode(
        token,
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm]
    )

    if payload.get("type") != token_type:
        raise JWTError(f"Invalid token type. Expected {token_type}")

    if not payload.get("sub") or not payload.get("email"):
        raise JWTError("Invalid token payload")

    return TokenPayload.from_dict(payload)
