"""
Dashboard Service.

Point-in-time shipment counters for agents and admins. READ-ONLY.
"""

from datetime import datetime, time, timedelta

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from shiptrack.app.core import clock
from shiptrack.app.domain.tracking.state_machine import ACTIVE_STATUSES, TERMINAL_STATUSES
from shiptrack.app.models.shipment import Shipment
from shiptrack.app.models.shipment_enums import ShipmentStatus
from shiptrack.app.schemas.shipment import DashboardStats


def local_day_bounds(now: datetime):
    """Naive-UTC bounds of the local calendar day containing ``now``."""
    tz = clock.local_timezone()
    local_date = clock.as_utc(now).astimezone(tz).date()
    start = clock.to_naive_utc(datetime.combine(local_date, time.min, tzinfo=tz))
    end = clock.to_naive_utc(datetime.combine(local_date + timedelta(days=1), time.min, tzinfo=tz))
    return start, end


class DashboardService:

    @staticmethod
    async def get_stats(db: AsyncSession, now: datetime = None) -> DashboardStats:
        """Counters over active shipments as of ``now``."""
        now = now or clock.utcnow()
        active_only = Shipment.is_active == True

        def count(*conditions):
            return select(func.count(Shipment.id)).where(active_only, *conditions)

        # 1. Totals
        total = (await db.execute(count())).scalar() or 0

        start, end = local_day_bounds(now)
        today = (await db.execute(
            count(Shipment.created_at >= start, Shipment.created_at < end)
        )).scalar() or 0

        # 2. Lifecycle buckets
        active = (await db.execute(
            count(Shipment.current_status.in_(list(ACTIVE_STATUSES)))
        )).scalar() or 0

        delivered = (await db.execute(
            count(Shipment.current_status == ShipmentStatus.DELIVERED)
        )).scalar() or 0

        delayed = (await db.execute(
            count(
                Shipment.current_status.not_in(list(TERMINAL_STATUSES)),
                Shipment.estimated_delivery < now,
            )
        )).scalar() or 0

        # 3. Status breakdown
        rows = await db.execute(
            select(Shipment.current_status, func.count(Shipment.id))
            .where(active_only)
            .group_by(Shipment.current_status)
        )
        breakdown = {status.value: n for status, n in rows}

        return DashboardStats(
            total_shipments=total,
            today_shipments=today,
            active_shipments=active,
            delivered_shipments=delivered,
            delayed_shipments=delayed,
            status_breakdown=breakdown,
            generated_at=now,
        )
