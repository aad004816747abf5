"""
Authentication dependencies for FastAPI.

This module provides dependencies for resolving the bearer token into an
account, either strictly (protected routes) or optionally (public routes).
"""

import logging
from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from shiptrack.app.core.exceptions import AppException, AuthenticationError, TokenRevokedError
from shiptrack.app.core.jwt import decode_access_token
from shiptrack.app.core.token_revocation import is_token_revoked
from shiptrack.app.db.session import get_db
from shiptrack.app.models.user import User

logger = logging.getLogger(__name__)

# HTTP Bearer security scheme; missing credentials are reported by us, not FastAPI
security = HTTPBearer(auto_error=False)


async def resolve_token(token: str, db: AsyncSession) -> User:
    """
    Turn a bearer token into an active account.

    Security checks:
    1. Validates JWT token signature and expiry
    2. Checks if token has been explicitly revoked
    3. Verifies the account still exists and is active (real-time check)

    Raises:
        AuthenticationError / TokenRevokedError: 401 if any check fails
    """
    payload = decode_access_token(token)
    if payload is None:
        raise AuthenticationError("Could not validate credentials")

    user_id = payload.get("user_id")
    if not user_id:
        raise AuthenticationError("Invalid token payload")

    if await is_token_revoked(token):
        raise TokenRevokedError()

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthenticationError("Account has been deactivated")

    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """FastAPI dependency for routes that require a signed-in account."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")
    return await resolve_token(credentials.credentials, db)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    """
    FastAPI dependency for public routes.

    A missing or unusable token leaves the caller anonymous instead of failing.
    """
    if credentials is None:
        return None
    try:
        return await resolve_token(credentials.credentials, db)
    except AppException as e:
        logger.debug("Ignoring bearer token on public route: %s", e.message)
        return None


async def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> str:
    """Raw bearer token of the request (used by logout)."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")
    return credentials.credentials
