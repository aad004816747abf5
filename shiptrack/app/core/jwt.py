"""
JWT token utilities for authentication.

Tokens are HS256, carry the account email as ``sub`` plus ``user_id`` and
``role``, and live for ``settings.access_token_expire_minutes``.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from shiptrack.app.core.config import settings

TOKEN_LIFETIME = timedelta(minutes=settings.access_token_expire_minutes)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Claims to encode (sub, user_id, role)
        expires_delta: Optional custom lifetime (defaults to the configured 7 days)

    Returns:
        Encoded JWT token string

    Example payload:
        {
            "sub": "asha@shipmail.com",
            "user_id": 123,
            "role": "agent",
            "exp": 1234567890
        }
    """
    claims = dict(data)
    claims["exp"] = datetime.now(timezone.utc) + (expires_delta or TOKEN_LIFETIME)
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and validate a JWT access token.

    Returns:
        Claims if the signature and expiry check out, None otherwise
    """
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None


def seconds_until_expiry(payload: Optional[Dict[str, Any]]) -> int:
    """
    Remaining lifetime of a decoded token, at least one second.

    Falls back to the full lifetime when the claims carry no ``exp``.
    """
    exp = (payload or {}).get("exp")
    if not exp:
        return int(TOKEN_LIFETIME.total_seconds())
    return max(int(exp - datetime.now(timezone.utc).timestamp()), 1)
