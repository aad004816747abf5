"""
Tracking number generation.

Format: a three-letter prefix followed by nine digits (``IND123456789``).
The existence check only pre-filters collisions; the unique constraint on
``shipments.tracking_number`` is the authoritative guard.
"""

import logging
import random
import re
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from shiptrack.app.core.config import settings
from shiptrack.app.core.exceptions import TrackingNumberExhaustedError, StorageUnavailableError
from shiptrack.app.models.shipment import Shipment

logger = logging.getLogger(__name__)

TRACKING_NUMBER_PATTERN = re.compile(r"^[A-Z]{3}[0-9]{9}$")

_LOWEST = 100_000_000
_HIGHEST = 999_999_999

_system_random = random.SystemRandom()


def normalize_tracking_number(code: str) -> str:
    return code.strip().upper()


def is_valid_tracking_number(code: str) -> bool:
    return bool(TRACKING_NUMBER_PATTERN.match(code))


def draw_candidate(prefix: str, rng: random.Random = _system_random) -> str:
    return f"{prefix}{rng.randint(_LOWEST, _HIGHEST)}"


async def tracking_number_exists(db: AsyncSession, tracking_number: str) -> bool:
    """Check active and inactive shipments alike."""
    result = await db.execute(
        select(Shipment.id).where(Shipment.tracking_number == tracking_number).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def generate_tracking_number(
    db: AsyncSession,
    prefix: Optional[str] = None,
    max_attempts: Optional[int] = None,
    rng: random.Random = _system_random,
) -> str:
    """
    Produce a tracking number not currently present in the ledger.

    Args:
        db: Database session
        prefix: Three-letter prefix (defaults to the configured prefix)
        max_attempts: Retry budget for collisions
        rng: Random source (injectable for tests)

    Returns:
        A fresh tracking number

    Raises:
        TrackingNumberExhaustedError: every candidate collided
        StorageUnavailableError: the existence check could not reach the database
    """
    prefix = (prefix or settings.tracking_number_prefix).upper()
    max_attempts = max_attempts or settings.tracking_number_max_attempts

    for attempt in range(1, max_attempts + 1):
        candidate = draw_candidate(prefix, rng)
        try:
            exists = await tracking_number_exists(db, candidate)
        except DBAPIError as e:
            logger.error("Tracking number lookup failed: %s", e)
            raise StorageUnavailableError("Could not reach the shipment ledger") from e

        if not exists:
            return candidate

        logger.warning("Tracking number collision on %s (attempt %d/%d)", candidate, attempt, max_attempts)

    raise TrackingNumberExhaustedError(max_attempts)
