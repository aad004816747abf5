"""
Token revocation using Redis.

Logged-out tokens are blacklisted until they would have expired anyway.
"""

import logging
from typing import Optional, Dict, Any
from redis.exceptions import RedisError
from shiptrack.app.core import redis_client as redis_client_module
from shiptrack.app.core.jwt import seconds_until_expiry

logger = logging.getLogger(__name__)

# Redis key prefix for blacklisted tokens
TOKEN_BLACKLIST_PREFIX = "blacklist:token:"


async def revoke_token(token: str, user_id: int, payload: Optional[Dict[str, Any]] = None) -> bool:
    """
    Revoke a specific JWT token by adding it to the blacklist.

    Args:
        token: The JWT token string to revoke
        user_id: User ID who owns the token
        payload: Decoded token, used to size the TTL

    Returns:
        True if successfully revoked, False otherwise
    """
    client = redis_client_module.redis_client
    try:
        await client.setex(
            f"{TOKEN_BLACKLIST_PREFIX}{token}",
            seconds_until_expiry(payload),
            str(user_id)  # Store user_id for audit purposes
        )
        return True
    except RedisError as e:
        logger.error("Error revoking token for user %s: %s", user_id, e)
        return False


async def is_token_revoked(token: str) -> bool:
    """
    Check if a token has been revoked.

    Fails open when Redis is unreachable.
    """
    client = redis_client_module.redis_client
    try:
        exists = await client.exists(f"{TOKEN_BLACKLIST_PREFIX}{token}")
        return exists > 0
    except RedisError as e:
        logger.warning("Error checking token revocation: %s", e)
        return False
