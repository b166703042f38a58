"""FastAPI dependencies for authentication and authorization."""

from dataclasses import dataclass, field
from typing import Optional

import jwt
from fastapi import Depends, Header
from jwt import PyJWTError

from .config import settings
from .exceptions import AuthenticationError, AuthorizationError

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class CurrentUser:
    """Identity extracted from a validated access token."""

    user_id: str
    email: Optional[str] = None
    roles: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_admin(self) -> bool:
        return ADMIN_ROLE in self.roles


def decode_access_token(token: str) -> CurrentUser:
    """
    Validate an access token and return the identity it carries.

    Raises:
        AuthenticationError: If the token is invalid, expired or has no subject
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"verify_aud": False},
        )
    except PyJWTError as e:
        raise AuthenticationError(detail=f"Token validation failed: {e}") from e

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError(detail="Invalid token payload")

    roles = payload.get("roles") or payload.get("app_metadata", {}).get("roles", [])
    if isinstance(roles, str):
        roles = [roles]

    return CurrentUser(
        user_id=str(user_id),
        email=payload.get("email"),
        roles=tuple(roles),
    )


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> CurrentUser:
    """
    Authentication dependency that validates Bearer tokens.

    Args:
        authorization: Authorization header with Bearer token

    Returns:
        CurrentUser: Identity from the validated token

    Raises:
        AuthenticationError: If token is invalid or missing
    """
    if not authorization:
        raise AuthenticationError(detail="Authorization header missing")

    try:
        scheme, token = authorization.split()
    except ValueError:
        raise AuthenticationError(detail="Invalid authorization header format")

    if scheme.lower() != "bearer":
        raise AuthenticationError(detail="Invalid authentication scheme")

    return decode_access_token(token)


async def get_optional_user(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> Optional[CurrentUser]:
    """Identity for endpoints that serve anonymous visitors and admins alike."""
    if not authorization:
        return None
    return await get_current_user(authorization)


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Authorization dependency for back-office operations."""
    if not user.is_admin:
        raise AuthorizationError(required_role=ADMIN_ROLE)
    return user


RequiredAuth = Depends(get_current_user)
AdminAuth = Depends(require_admin)
OptionalAuth = Depends(get_optional_user)
