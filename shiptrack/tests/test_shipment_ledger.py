"""
Tests for the shipment ledger: creation, event recording, delivery attempts,
agent assignment and optimistic concurrency.
"""

from datetime import datetime, timedelta

import pytest

from shiptrack.app.core import clock
from shiptrack.app.core.exceptions import (
    ConflictError, ConcurrentUpdateError, InvalidStatusTransitionError,
    DeliveryAttemptsExhaustedError, TrackingNumberExhaustedError, ValidationError
)
from shiptrack.app.core.config import settings
from shiptrack.app.domain.tracking import ledger, state_machine
from shiptrack.app.domain.tracking.ledger import ShipmentLedger, agent_identity_for
from shiptrack.app.domain.tracking.state_machine import MAX_ATTEMPTS_DESCRIPTION
from shiptrack.app.models.enums import UserRole
from shiptrack.app.models.shipment_enums import ShipmentStatus
from shiptrack.app.schemas.shipment import ShipmentCreate, TrackingEventCreate

T0 = datetime(2026, 4, 1, 6, 30, 0)


@pytest.fixture
def frozen_clock(monkeypatch):
    monkeypatch.setattr(clock, "utcnow", lambda: T0)
    return T0


@pytest.fixture
async def booked(db_session, customer, shipment_payload, frozen_clock):
    return await ShipmentLedger.create_shipment(db_session, ShipmentCreate(**shipment_payload()), customer)


def event(status, location="Hub", description="Scanned", **fields):
    return TrackingEventCreate(status=status, location=location, description=description, **fields)


@pytest.mark.asyncio
async def test_next_day_booking(booked, customer):
    assert booked.current_status == ShipmentStatus.ORDER_PLACED
    assert booked.progress == 10
    assert booked.estimated_delivery == T0 + timedelta(days=2)
    assert booked.created_by_id == customer.id
    assert booked.delivery_attempts == 0

    assert len(booked.events) == 1
    initial = booked.events[0]
    assert initial.sequence == 1
    assert initial.status == ShipmentStatus.ORDER_PLACED
    assert initial.location == "Bengaluru, Karnataka"
    assert initial.timestamp == T0


@pytest.mark.asyncio
@pytest.mark.parametrize("service_type,offset", [
    ("hyperlocal", timedelta(hours=6)),
    ("same-day", timedelta(days=1)),
    ("standard", timedelta(days=4)),
    ("economy", timedelta(days=7)),
    ("express", timedelta(days=1)),
])
async def test_estimated_delivery_per_service(db_session, customer, shipment_payload, frozen_clock, service_type, offset):
    payload = shipment_payload(service={"type": service_type, "cost": 50})
    shipment = await ShipmentLedger.create_shipment(db_session, ShipmentCreate(**payload), customer)
    assert shipment.estimated_delivery == T0 + offset


@pytest.mark.asyncio
async def test_client_supplied_tracking_number_is_kept(db_session, customer, shipment_payload):
    shipment = await ShipmentLedger.create_shipment(
        db_session, ShipmentCreate(**shipment_payload(tracking_number="ind987654321")), customer
    )
    assert shipment.tracking_number == "IND987654321"


@pytest.mark.asyncio
async def test_duplicate_tracking_number_conflicts(db_session, customer, shipment_payload):
    data = ShipmentCreate(**shipment_payload(tracking_number="IND555000111"))
    await ShipmentLedger.create_shipment(db_session, data, customer)

    with pytest.raises(ConflictError) as exc_info:
        await ShipmentLedger.create_shipment(db_session, data, customer)
    assert exc_info.value.details["field"] == "tracking_number"


@pytest.mark.asyncio
async def test_foreign_prefix_is_rejected(db_session, customer, shipment_payload):
    with pytest.raises(ValidationError):
        await ShipmentLedger.create_shipment(
            db_session, ShipmentCreate(**shipment_payload(tracking_number="USA123456789")), customer
        )


@pytest.mark.asyncio
async def test_events_append_in_order(db_session, booked, agent):
    statuses = [ShipmentStatus.IN_TRANSIT, ShipmentStatus.IN_TRANSIT, ShipmentStatus.OUT_FOR_DELIVERY]
    for i, status in enumerate(statuses):
        await ShipmentLedger.record_event(
            db_session, booked, event(status, location=f"Stop {i}"), agent=agent_identity_for(agent)
        )

    assert [e.sequence for e in booked.events] == [1, 2, 3, 4]
    assert [e.location for e in booked.events[1:]] == ["Stop 0", "Stop 1", "Stop 2"]
    assert booked.current_status == ShipmentStatus.OUT_FOR_DELIVERY
    assert booked.progress == 80
    assert booked.events[-1].agent_name == "Ravi Kumar"


@pytest.mark.asyncio
async def test_reloaded_history_matches(db_session, session_factory, booked):
    await ShipmentLedger.record_event(db_session, booked, event(ShipmentStatus.IN_TRANSIT))

    async with session_factory() as other:
        reloaded = await ShipmentLedger.find_by_tracking_number(other, booked.tracking_number.lower())
        assert [e.status for e in reloaded.events] == [ShipmentStatus.ORDER_PLACED, ShipmentStatus.IN_TRANSIT]


@pytest.mark.asyncio
async def test_delivered_event_stamps_delivery_time(db_session, booked):
    await ShipmentLedger.record_event(db_session, booked, event(ShipmentStatus.OUT_FOR_DELIVERY))
    t2 = T0 + timedelta(hours=20)

    await ShipmentLedger.record_event(db_session, booked, event(ShipmentStatus.DELIVERED, timestamp=t2))

    assert booked.current_status == ShipmentStatus.DELIVERED
    assert booked.progress == 100
    assert booked.delivered_at == t2


@pytest.mark.asyncio
async def test_exception_keeps_progress(db_session, booked):
    await ShipmentLedger.record_event(db_session, booked, event(ShipmentStatus.IN_TRANSIT))
    await ShipmentLedger.record_event(db_session, booked, event(ShipmentStatus.EXCEPTION, description="Weather delay"))

    assert booked.current_status == ShipmentStatus.EXCEPTION
    assert booked.progress == 50


@pytest.mark.asyncio
async def test_cancellation_records_reason(db_session, booked):
    await ShipmentLedger.record_event(
        db_session, booked, event(ShipmentStatus.CANCELLED, description="Customer request")
    )
    assert booked.progress == 0
    assert booked.cancelled_at == T0
    assert booked.cancellation_reason == "Customer request"


@pytest.mark.asyncio
async def test_terminal_shipment_rejects_events(db_session, booked):
    await ShipmentLedger.record_event(db_session, booked, event(ShipmentStatus.RETURNED))

    with pytest.raises(InvalidStatusTransitionError):
        await ShipmentLedger.record_event(db_session, booked, event(ShipmentStatus.IN_TRANSIT))

    assert len(booked.events) == 2
    assert booked.current_status == ShipmentStatus.RETURNED


@pytest.mark.asyncio
async def test_backward_move_is_rejected(db_session, booked):
    await ShipmentLedger.record_event(db_session, booked, event(ShipmentStatus.OUT_FOR_DELIVERY))

    with pytest.raises(InvalidStatusTransitionError) as exc_info:
        await ShipmentLedger.record_event(db_session, booked, event(ShipmentStatus.ORDER_PLACED))
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_third_delivery_attempt_raises_exception_event(db_session, booked):
    await ShipmentLedger.record_event(db_session, booked, event(ShipmentStatus.OUT_FOR_DELIVERY))

    first = await ShipmentLedger.increment_delivery_attempt(db_session, booked)
    second = await ShipmentLedger.increment_delivery_attempt(db_session, booked)
    assert first.exception_event is None and second.exception_event is None
    assert booked.current_status == ShipmentStatus.OUT_FOR_DELIVERY

    third = await ShipmentLedger.increment_delivery_attempt(db_session, booked)

    assert booked.delivery_attempts == 3
    assert third.exception_event is not None
    assert booked.current_status == ShipmentStatus.EXCEPTION
    assert booked.progress == 80
    assert booked.events[-1].location == "Delivery Center"
    assert booked.events[-1].description == MAX_ATTEMPTS_DESCRIPTION

    with pytest.raises(DeliveryAttemptsExhaustedError):
        await ShipmentLedger.increment_delivery_attempt(db_session, booked)


@pytest.mark.asyncio
async def test_concurrent_writers_one_loses(session_factory, booked):
    async with session_factory() as session_a, session_factory() as session_b:
        copy_a = await ShipmentLedger.find_by_tracking_number(session_a, booked.tracking_number)
        copy_b = await ShipmentLedger.find_by_tracking_number(session_b, booked.tracking_number)

        await ShipmentLedger.record_event(session_b, copy_b, event(ShipmentStatus.IN_TRANSIT, location="Pune"))

        with pytest.raises(ConcurrentUpdateError):
            await ShipmentLedger.record_event(session_a, copy_a, event(ShipmentStatus.IN_TRANSIT, location="Nashik"))

    async with session_factory() as check:
        final = await ShipmentLedger.find_by_tracking_number(check, booked.tracking_number)
        assert [e.location for e in final.events][1:] == ["Pune"]
        assert [e.sequence for e in final.events] == [1, 2]


@pytest.mark.asyncio
async def test_assign_agent_requires_active_agent(db_session, booked, agent, make_user):
    await ShipmentLedger.assign_agent(db_session, booked, agent.id)
    assert booked.assigned_agent_id == agent.id

    parties = await ShipmentLedger.resolve_parties(db_session, booked)
    assert parties["assigned_agent"].email == agent.email
    assert parties["created_by"].role == UserRole.USER

    plain_user = await make_user(UserRole.USER)
    with pytest.raises(ValidationError):
        await ShipmentLedger.assign_agent(db_session, booked, plain_user.id)


@pytest.mark.asyncio
async def test_unknown_code_finds_nothing_and_malformed_code_is_rejected(db_session, booked):
    assert await ShipmentLedger.find_by_tracking_number(db_session, "IND000000000") is None
    with pytest.raises(ValidationError) as exc_info:
        await ShipmentLedger.find_by_tracking_number(db_session, "not-a-code")
    assert exc_info.value.details["field"] == "tracking_number"


@pytest.mark.asyncio
async def test_deactivated_shipment_is_not_found(db_session, booked):
    tracking_number = booked.tracking_number
    booked.is_active = False
    await db_session.commit()

    assert await ShipmentLedger.find_by_tracking_number(db_session, tracking_number) is None


def scripted_numbers(monkeypatch, *numbers):
    """Make the ledger draw the given numbers in order, skipping the existence check."""
    drawn = []
    queue = list(numbers)

    async def next_number(db):
        number = queue.pop(0) if len(queue) > 1 else queue[0]
        drawn.append(number)
        return number

    monkeypatch.setattr(ledger, "generate_tracking_number", next_number)
    return drawn


@pytest.mark.asyncio
async def test_generated_number_taken_concurrently_is_redrawn(db_session, customer, shipment_payload, monkeypatch):
    await ShipmentLedger.create_shipment(
        db_session, ShipmentCreate(**shipment_payload(tracking_number="IND111111111")), customer
    )
    drawn = scripted_numbers(monkeypatch, "IND111111111", "IND222222222")

    shipment = await ShipmentLedger.create_shipment(db_session, ShipmentCreate(**shipment_payload()), customer)

    assert drawn == ["IND111111111", "IND222222222"]
    assert shipment.tracking_number == "IND222222222"
    assert shipment.created_by_id == customer.id


@pytest.mark.asyncio
async def test_redraws_stop_at_retry_budget(db_session, customer, shipment_payload, monkeypatch):
    await ShipmentLedger.create_shipment(
        db_session, ShipmentCreate(**shipment_payload(tracking_number="IND111111111")), customer
    )
    monkeypatch.setattr(settings, "tracking_number_max_attempts", 3)
    drawn = scripted_numbers(monkeypatch, "IND111111111")

    with pytest.raises(TrackingNumberExhaustedError):
        await ShipmentLedger.create_shipment(db_session, ShipmentCreate(**shipment_payload()), customer)

    assert len(drawn) == 3


@pytest.mark.asyncio
async def test_constraint_failure_is_not_reported_as_number_conflict(db_session, customer, shipment_payload, monkeypatch):
    monkeypatch.setitem(state_machine.STATUS_PROGRESS, ShipmentStatus.ORDER_PLACED, 150)

    with pytest.raises(ValidationError) as exc_info:
        await ShipmentLedger.create_shipment(db_session, ShipmentCreate(**shipment_payload()), customer)

    assert "field" not in exc_info.value.details
