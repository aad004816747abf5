"""
Read-time derived shipment fields.

Computed on every response from stored state and the current time; never
persisted.
"""

from datetime import datetime, time, tzinfo
from typing import Optional

from shiptrack.app.core import clock
from shiptrack.app.models.shipment_enums import ShipmentStatus

DELIVERY_WINDOW_START = time(9, 0)
DELIVERY_WINDOW_END = time(18, 0)


def is_delayed(status: ShipmentStatus, estimated_delivery: Optional[datetime], now: datetime) -> bool:
    """True iff the shipment is not delivered and its estimate has passed."""
    if status == ShipmentStatus.DELIVERED or estimated_delivery is None:
        return False
    return now > estimated_delivery


def delivery_window(estimated_delivery: Optional[datetime], tz: Optional[tzinfo] = None) -> Optional[dict]:
    """
    09:00–18:00 local time on the local calendar date of the estimate.

    ``estimated_delivery`` is naive UTC; the returned bounds are aware.
    """
    if estimated_delivery is None:
        return None
    tz = tz or clock.local_timezone()
    local_date = clock.as_utc(estimated_delivery).astimezone(tz).date()
    return {
        "start": datetime.combine(local_date, DELIVERY_WINDOW_START, tzinfo=tz),
        "end": datetime.combine(local_date, DELIVERY_WINDOW_END, tzinfo=tz),
    }


def package_volume(length_cm: float, width_cm: float, height_cm: float) -> float:
    """Volume in cubic meters from centimeter dimensions."""
    return (length_cm * width_cm * height_cm) / 1_000_000
