"""
Tests for the operations dashboard counters.
"""

from datetime import datetime, timedelta

import pytest

from shiptrack.app.core import clock
from shiptrack.app.domain.tracking.ledger import ShipmentLedger
from shiptrack.app.models.shipment_enums import ShipmentStatus
from shiptrack.app.schemas.shipment import ShipmentCreate, TrackingEventCreate
from shiptrack.app.services.dashboard import DashboardService, local_day_bounds

# Midday in Asia/Kolkata
NOW = datetime(2026, 4, 1, 6, 30, 0)


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def fake_clock(monkeypatch):
    fake = FakeClock(NOW)
    monkeypatch.setattr(clock, "utcnow", fake)
    return fake


@pytest.fixture
async def populated(db_session, customer, shipment_payload, fake_clock):
    async def book(at, service_type="next-day"):
        fake_clock.now = at
        payload = shipment_payload(service={"type": service_type, "cost": 80})
        return await ShipmentLedger.create_shipment(db_session, ShipmentCreate(**payload), customer)

    # Overdue: booked five days ago on a four-day service
    overdue = await book(NOW - timedelta(days=5), "standard")
    await ShipmentLedger.record_event(db_session, overdue, TrackingEventCreate(
        status=ShipmentStatus.IN_TRANSIT, location="Nagpur", description="Linehaul"
    ))

    # Delivered late; terminal shipments are never delayed
    delivered = await book(NOW - timedelta(days=4))
    await ShipmentLedger.record_event(db_session, delivered, TrackingEventCreate(
        status=ShipmentStatus.DELIVERED, location="Mumbai", description="Handed over"
    ))

    # Yesterday in local time
    await book(NOW - timedelta(days=1), "economy")

    # Today: one still open, one cancelled
    await book(NOW - timedelta(hours=2))
    cancelled = await book(NOW - timedelta(hours=1))
    await ShipmentLedger.record_event(db_session, cancelled, TrackingEventCreate(
        status=ShipmentStatus.CANCELLED, location="Bengaluru", description="Customer request"
    ))

    fake_clock.now = NOW


def test_local_day_bounds_follow_configured_timezone():
    start, end = local_day_bounds(NOW)
    assert start == datetime(2026, 3, 31, 18, 30)
    assert end == datetime(2026, 4, 1, 18, 30)


@pytest.mark.asyncio
async def test_empty_dashboard(db_session):
    stats = await DashboardService.get_stats(db_session, NOW)
    assert stats.total_shipments == 0
    assert stats.delayed_shipments == 0
    assert stats.status_breakdown == {}


@pytest.mark.asyncio
async def test_counters(db_session, populated):
    stats = await DashboardService.get_stats(db_session, NOW)

    assert stats.total_shipments == 5
    assert stats.today_shipments == 2
    assert stats.active_shipments == 3
    assert stats.delivered_shipments == 1
    assert stats.delayed_shipments == 1
    assert stats.status_breakdown == {
        "In Transit": 1,
        "Order Placed": 2,
        "Delivered": 1,
        "Cancelled": 1,
    }


@pytest.mark.asyncio
async def test_dashboard_endpoint_for_staff(client, agent, admin, auth_headers, populated):
    for staff in (agent, admin):
        response = await client.get("/v1/shipments/dashboard/stats", headers=auth_headers(staff))
        assert response.status_code == 200
        stats = response.json()["statistics"]
        assert stats["total_shipments"] == 5
        assert stats["delayed_shipments"] == 1


@pytest.mark.asyncio
async def test_dashboard_forbidden_for_customers(client, customer, auth_headers):
    response = await client.get("/v1/shipments/dashboard/stats", headers=auth_headers(customer))
    assert response.status_code == 403
    assert response.json()["details"]["operation"] == "view_dashboard"


@pytest.mark.asyncio
async def test_dashboard_requires_authentication(client):
    response = await client.get("/v1/shipments/dashboard/stats")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_deactivated_shipments_are_not_counted(db_session, customer, shipment_payload, populated, fake_clock):
    retired = await ShipmentLedger.create_shipment(
        db_session, ShipmentCreate(**shipment_payload(service={"type": "standard", "cost": 80})), customer
    )
    before = await DashboardService.get_stats(db_session, NOW)
    assert before.total_shipments == 6

    retired.is_active = False
    await db_session.commit()

    stats = await DashboardService.get_stats(db_session, NOW)
    assert stats.total_shipments == 5
    assert stats.today_shipments == 2
    assert stats.active_shipments == 3
    assert stats.status_breakdown["Order Placed"] == 2
