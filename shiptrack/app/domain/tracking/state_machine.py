"""
Shipment lifecycle rules.

    ORDER_PLACED → IN_TRANSIT → OUT_FOR_DELIVERY → DELIVERED
                      any non-terminal ──→ EXCEPTION ──→ any
                      any non-terminal ──→ RETURNED | CANCELLED

Pure functions only; the ledger applies them to persisted shipments.
"""

from typing import Optional

from shiptrack.app.models.shipment_enums import ShipmentStatus


MAX_DELIVERY_ATTEMPTS = 3

STATUS_PROGRESS = {
    ShipmentStatus.ORDER_PLACED: 10,
    ShipmentStatus.IN_TRANSIT: 50,
    ShipmentStatus.OUT_FOR_DELIVERY: 80,
    ShipmentStatus.DELIVERED: 100,
    ShipmentStatus.RETURNED: 100,
    ShipmentStatus.CANCELLED: 0,
}

TERMINAL_STATUSES = frozenset({
    ShipmentStatus.DELIVERED,
    ShipmentStatus.RETURNED,
    ShipmentStatus.CANCELLED,
})

# Non-terminal states of the forward chain, in order
FORWARD_CHAIN = (
    ShipmentStatus.ORDER_PLACED,
    ShipmentStatus.IN_TRANSIT,
    ShipmentStatus.OUT_FOR_DELIVERY,
)

ACTIVE_STATUSES = frozenset(FORWARD_CHAIN)

INITIAL_EVENT_DESCRIPTION = "Shipment order has been placed and is being processed"
MAX_ATTEMPTS_LOCATION = "Delivery Center"
MAX_ATTEMPTS_DESCRIPTION = "Maximum delivery attempts reached. Package being returned to sender."


def is_terminal(status: ShipmentStatus) -> bool:
    return status in TERMINAL_STATUSES


def progress_for(status: ShipmentStatus, current_progress: int) -> int:
    """Progress after entering ``status``; EXCEPTION keeps the current value."""
    return STATUS_PROGRESS.get(status, current_progress)


def can_transition(current: ShipmentStatus, target: ShipmentStatus) -> bool:
    """
    Transition legality.

    - nothing leaves a terminal state
    - from EXCEPTION every status is reachable
    - side exits and DELIVERED are reachable from any non-terminal state
    - within the forward chain, a status may repeat or advance, never go back
    """
    if is_terminal(current):
        return False
    if current == ShipmentStatus.EXCEPTION:
        return True
    if target not in FORWARD_CHAIN:
        return True
    return FORWARD_CHAIN.index(target) >= FORWARD_CHAIN.index(current)


def terminal_timestamp_field(status: ShipmentStatus) -> Optional[str]:
    """Name of the shipment column stamped when ``status`` is entered."""
    return {
        ShipmentStatus.DELIVERED: "delivered_at",
        ShipmentStatus.RETURNED: "returned_at",
        ShipmentStatus.CANCELLED: "cancelled_at",
    }.get(status)
