"""
Tests for tracking number generation.
"""

import random

import pytest
from sqlalchemy.exc import OperationalError

from shiptrack.app.core.exceptions import TrackingNumberExhaustedError, StorageUnavailableError
from shiptrack.app.domain.tracking import tracking_numbers
from shiptrack.app.domain.tracking.ledger import ShipmentLedger
from shiptrack.app.domain.tracking.tracking_numbers import (
    TRACKING_NUMBER_PATTERN, generate_tracking_number, normalize_tracking_number, is_valid_tracking_number
)
from shiptrack.app.schemas.shipment import ShipmentCreate


@pytest.mark.asyncio
async def test_generated_numbers_match_format_and_are_unique(db_session):
    numbers = {await generate_tracking_number(db_session) for _ in range(50)}

    assert len(numbers) == 50
    for number in numbers:
        assert TRACKING_NUMBER_PATTERN.match(number)
        assert number.startswith("IND")


@pytest.mark.asyncio
async def test_collision_is_retried(db_session, customer, shipment_payload):
    taken = tracking_numbers.draw_candidate("IND", random.Random(7))
    await ShipmentLedger.create_shipment(
        db_session, ShipmentCreate(**shipment_payload(tracking_number=taken)), customer
    )

    # Same seed: first draw collides, second is fresh
    number = await generate_tracking_number(db_session, rng=random.Random(7))

    assert number != taken
    assert is_valid_tracking_number(number)


class ScriptedRandom:
    """Random source yielding a fixed sequence of draws."""

    def __init__(self, *values):
        self.values = list(values)

    def randint(self, low, high):
        return self.values.pop(0)


@pytest.mark.asyncio
async def test_inactive_shipment_numbers_are_not_reused(db_session, customer, shipment_payload):
    retired = await ShipmentLedger.create_shipment(
        db_session, ShipmentCreate(**shipment_payload(tracking_number="IND300000001")), customer
    )
    retired.is_active = False
    await db_session.commit()

    number = await generate_tracking_number(db_session, rng=ScriptedRandom(300000001, 300000002))

    assert number == "IND300000002"


@pytest.mark.asyncio
async def test_exhausted_retry_budget_raises(db_session, customer, shipment_payload, monkeypatch):
    await ShipmentLedger.create_shipment(
        db_session, ShipmentCreate(**shipment_payload(tracking_number="IND100000001")), customer
    )
    monkeypatch.setattr(tracking_numbers, "draw_candidate", lambda prefix, rng: "IND100000001")

    with pytest.raises(TrackingNumberExhaustedError) as exc_info:
        await generate_tracking_number(db_session, max_attempts=4)

    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_unreachable_store_aborts_generation(db_session, monkeypatch):
    async def broken_lookup(db, tracking_number):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    monkeypatch.setattr(tracking_numbers, "tracking_number_exists", broken_lookup)

    with pytest.raises(StorageUnavailableError):
        await generate_tracking_number(db_session)


def test_normalize_uppercases_and_strips():
    assert normalize_tracking_number("  ind123456789 ") == "IND123456789"


@pytest.mark.parametrize("code,valid", [
    ("IND123456789", True),
    ("ABC000000000", True),
    ("IND12345678", False),
    ("IN1234567890", False),
    ("ind123456789", False),
    ("IND١٢٣٤٥٦٧٨٩", False),
])
def test_format_validation(code, valid):
    assert is_valid_tracking_number(code) is valid
