"""FastAPI dependencies for database sessions, authentication and lock ownership."""

from typing import AsyncGenerator, Optional

import jwt
from fastapi import Depends, Header, Request
from jwt import PyJWTError
from sqlalchemy.ext.asyncio import AsyncSession

from .config import settings
from .database import get_async_session
from .exceptions import AuthenticationError, AuthorizationError
from ..services.owner_resolution import OwnerIdentity, client_ip, resolve_owner


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Database dependency that provides async database sessions.

    Yields:
        AsyncSession: Database session
    """
    async for session in get_async_session():
        yield session


def decode_bearer_token(authorization: str) -> dict:
    """
    Validate an ``Authorization: Bearer`` header and return the caller.

    Raises:
        AuthenticationError: If the header or token is invalid
    """
    try:
        scheme, token = authorization.split()
    except ValueError:
        raise AuthenticationError(detail="Invalid authorization header format")

    if scheme.lower() != "bearer":
        raise AuthenticationError(detail="Invalid authentication scheme")

    try:
        # PyJWT rejects expired tokens when an exp claim is present
        payload = jwt.decode(
            token,
            settings.bearer_token_secret,
            algorithms=[settings.jwt_algorithm]
        )
    except PyJWTError as e:
        raise AuthenticationError(detail=f"Token validation failed: {str(e)}")

    user_id = payload.get("sub")
    if user_id is None or not str(user_id).strip():
        raise AuthenticationError(detail="Invalid token payload")

    roles = payload.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]

    return {
        "user_id": str(user_id).strip(),
        "username": payload.get("username"),
        "email": payload.get("email"),
        "roles": list(roles),
    }


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> dict:
    """
    Authentication dependency that validates Bearer tokens.

    Raises:
        AuthenticationError: If the token is missing or invalid
    """
    if not authorization:
        raise AuthenticationError(detail="Authorization header missing")
    return decode_bearer_token(authorization)


async def get_optional_user(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> Optional[dict]:
    """Like ``get_current_user`` but anonymous callers get None; a bad token still fails."""
    if not authorization:
        return None
    return decode_bearer_token(authorization)


def require_roles(*roles: str):
    """Dependency factory admitting only users holding one of ``roles``."""

    async def check_roles(user: dict = Depends(get_current_user)) -> dict:
        if not set(roles) & set(user.get("roles", [])):
            raise AuthorizationError(
                detail="Insufficient permissions to access this resource",
                required_permissions=list(roles),
            )
        return user

    return check_roles


def request_ip(request: Request) -> Optional[str]:
    """Network origin of the request."""
    peer = request.client.host if request.client else None
    return client_ip(request.headers, peer, settings.trusted_proxies)


def request_client_token(request: Request, body_client_id: Optional[str] = None) -> Optional[str]:
    """Client token from the X-Client-Id header, else from the request body."""
    header = request.headers.get("x-client-id")
    if header and header.strip():
        return header.strip()
    return body_client_id


def request_owner(
    request: Request,
    user: Optional[dict],
    body_client_id: Optional[str] = None,
) -> OwnerIdentity:
    """
    Resolve the lock owner for a request.

    Raises:
        ValidationError: If the request carries no usable identity
    """
    return resolve_owner(
        user_id=user["user_id"] if user else None,
        client_token=request_client_token(request, body_client_id),
        remote_addr=request_ip(request),
    )
