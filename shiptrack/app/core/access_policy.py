"""
Access policy for shipments.

Every shipment read and write is gated here. A caller is mapped to one policy
object by role; the policy answers whether an operation is allowed and which
projection of a shipment the caller may see.

    anonymous   -> public view only, no writes
    user        -> full view of associated shipments, may book shipments
    agent       -> full view of everything, tracking writes, dashboard
    admin       -> agent rights plus agent assignment
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Union

from fastapi import Depends

from shiptrack.app.core.dependencies import get_current_user, get_optional_user
from shiptrack.app.core.exceptions import InsufficientPermissionsError
from shiptrack.app.domain.tracking import derived
from shiptrack.app.models.enums import UserRole
from shiptrack.app.models.shipment import Shipment
from shiptrack.app.models.tracking_event import TrackingEvent
from shiptrack.app.models.user import User
from shiptrack.app.schemas.shipment import (
    PublicShipmentView, ShipmentDetailView, StaffShipmentView,
    PublicTrackingEvent, TrackingEventResponse, Coordinates, AgentIdentity,
    AddressOut, PartyOut, PackageOut, DimensionsOut, ServiceOut, Insurance,
    DeliveryWindow, AccountRef, PaymentOut
)


class Operation(str, Enum):
    CREATE_SHIPMENT = "create_shipment"
    RECORD_EVENT = "record_event"
    RECORD_DELIVERY_ATTEMPT = "record_delivery_attempt"
    ASSIGN_AGENT = "assign_agent"
    VIEW_DASHBOARD = "view_dashboard"


class Tier(str, Enum):
    PUBLIC = "public"
    DETAIL = "detail"
    STAFF = "staff"


ShipmentView = Union[StaffShipmentView, ShipmentDetailView, PublicShipmentView]


@dataclass(frozen=True)
class Caller:
    """The party making a request; ``account`` is None for anonymous callers."""
    account: Optional[User] = None

    @property
    def is_anonymous(self) -> bool:
        return self.account is None


def is_associated(account: User, shipment: Shipment) -> bool:
    """Creator, or the account email matches the sender or recipient email."""
    if shipment.created_by_id == account.id:
        return True
    email = account.email.lower()
    return email == (shipment.sender_email or "").lower() or email == (shipment.recipient_email or "").lower()


# --- Projections ---

def public_event_view(event: TrackingEvent) -> PublicTrackingEvent:
    return PublicTrackingEvent(
        status=event.status,
        location=event.location,
        description=event.description,
        timestamp=event.timestamp,
    )


def full_event_view(event: TrackingEvent) -> TrackingEventResponse:
    coordinates = None
    if event.latitude is not None and event.longitude is not None:
        coordinates = Coordinates(latitude=event.latitude, longitude=event.longitude)
    agent = None
    if event.agent_name or event.agent_id or event.agent_contact:
        agent = AgentIdentity(name=event.agent_name, id=event.agent_id, contact=event.agent_contact)
    return TrackingEventResponse(
        status=event.status,
        location=event.location,
        description=event.description,
        timestamp=event.timestamp,
        coordinates=coordinates,
        agent=agent,
    )


def _party(shipment: Shipment, prefix: str) -> PartyOut:
    values = {
        name: getattr(shipment, f"{prefix}_{name}")
        for name in ("name", "email", "phone", "street", "city", "state", "pincode", "country")
    }
    return PartyOut(
        name=values["name"],
        email=values["email"],
        phone=values["phone"],
        address=AddressOut(
            street=values["street"],
            city=values["city"],
            state=values["state"],
            pincode=values["pincode"],
            country=values["country"],
        ),
    )


def _account_ref(user: Optional[User]) -> Optional[AccountRef]:
    if user is None:
        return None
    return AccountRef(id=user.id, full_name=user.full_name, email=user.email, phone=user.phone)


def build_public_view(shipment: Shipment, now: datetime) -> PublicShipmentView:
    return PublicShipmentView(
        tracking_number=shipment.tracking_number,
        current_status=shipment.current_status,
        progress=shipment.progress,
        tracking=[public_event_view(e) for e in shipment.events],
        estimated_delivery=shipment.estimated_delivery,
        is_delayed=derived.is_delayed(shipment.current_status, shipment.estimated_delivery, now),
        service_type=shipment.service_type,
    )


def _detail_fields(shipment: Shipment, now: datetime, parties: Optional[Dict[str, Optional[User]]]) -> dict:
    parties = parties or {}
    window = derived.delivery_window(shipment.estimated_delivery)
    return dict(
        tracking_number=shipment.tracking_number,
        current_status=shipment.current_status,
        progress=shipment.progress,
        sender=_party(shipment, "sender"),
        recipient=_party(shipment, "recipient"),
        package=PackageOut(
            description=shipment.package_description,
            weight=shipment.package_weight_kg,
            dimensions=DimensionsOut(
                length=shipment.package_length_cm,
                width=shipment.package_width_cm,
                height=shipment.package_height_cm,
            ),
            volume=derived.package_volume(
                shipment.package_length_cm, shipment.package_width_cm, shipment.package_height_cm
            ),
            value=shipment.package_value,
            category=shipment.package_category,
            is_fragile=shipment.package_is_fragile,
            requires_signature=shipment.package_requires_signature,
        ),
        service=ServiceOut(
            type=shipment.service_type,
            priority=shipment.service_priority,
            cost=shipment.service_cost,
            estimated_delivery=shipment.estimated_delivery,
            insurance=Insurance(
                is_insured=shipment.insurance_is_insured,
                coverage=shipment.insurance_coverage,
                premium=shipment.insurance_premium,
            ),
        ),
        tracking=[full_event_view(e) for e in shipment.events],
        estimated_delivery=shipment.estimated_delivery,
        is_delayed=derived.is_delayed(shipment.current_status, shipment.estimated_delivery, now),
        delivery_window=DeliveryWindow(**window) if window else None,
        delivery_attempts=shipment.delivery_attempts,
        payment=PaymentOut(status=shipment.payment_status, method=shipment.payment_method),
        special_instructions=shipment.special_instructions,
        created_by=_account_ref(parties.get("created_by")),
        assigned_agent=_account_ref(parties.get("assigned_agent")),
        delivered_at=shipment.delivered_at,
        returned_at=shipment.returned_at,
        cancelled_at=shipment.cancelled_at,
        cancellation_reason=shipment.cancellation_reason,
        created_at=shipment.created_at,
        updated_at=shipment.updated_at,
    )


def build_detail_view(shipment: Shipment, now: datetime, parties=None) -> ShipmentDetailView:
    return ShipmentDetailView(**_detail_fields(shipment, now, parties))


def build_staff_view(shipment: Shipment, now: datetime, parties=None) -> StaffShipmentView:
    return StaffShipmentView(
        **_detail_fields(shipment, now, parties),
        internal_notes=shipment.internal_notes,
        is_active=shipment.is_active,
    )


# --- Policies ---

class ShipmentPolicy:
    """Base policy: nothing beyond the public view."""

    allowed_operations = frozenset()

    def __init__(self, caller: Caller):
        self.caller = caller

    def can_read(self, shipment: Shipment) -> bool:
        """Whether the caller may see the full record (not just the public view)."""
        return False

    def can_write(self, operation: Operation, shipment: Optional[Shipment] = None) -> bool:
        return operation in self.allowed_operations

    def tier(self, shipment: Shipment) -> Tier:
        return Tier.DETAIL if self.can_read(shipment) else Tier.PUBLIC

    def visible_fields(
        self,
        shipment: Shipment,
        now: datetime,
        parties: Optional[Dict[str, Optional[User]]] = None,
    ) -> ShipmentView:
        tier = self.tier(shipment)
        if tier == Tier.STAFF:
            return build_staff_view(shipment, now, parties)
        if tier == Tier.DETAIL:
            return build_detail_view(shipment, now, parties)
        return build_public_view(shipment, now)


class AnonymousPolicy(ShipmentPolicy):
    pass


class OwnerPolicy(ShipmentPolicy):
    allowed_operations = frozenset({Operation.CREATE_SHIPMENT})

    def can_read(self, shipment: Shipment) -> bool:
        return is_associated(self.caller.account, shipment)


class AgentPolicy(ShipmentPolicy):
    allowed_operations = frozenset({
        Operation.CREATE_SHIPMENT,
        Operation.RECORD_EVENT,
        Operation.RECORD_DELIVERY_ATTEMPT,
        Operation.VIEW_DASHBOARD,
    })

    def can_read(self, shipment: Shipment) -> bool:
        return True

    def tier(self, shipment: Shipment) -> Tier:
        return Tier.STAFF


class AdminPolicy(AgentPolicy):
    allowed_operations = AgentPolicy.allowed_operations | {Operation.ASSIGN_AGENT}


_POLICIES_BY_ROLE = {
    UserRole.USER: OwnerPolicy,
    UserRole.AGENT: AgentPolicy,
    UserRole.ADMIN: AdminPolicy,
}


def policy_for(caller: Caller) -> ShipmentPolicy:
    if caller.is_anonymous:
        return AnonymousPolicy(caller)
    return _POLICIES_BY_ROLE[caller.account.role](caller)


# --- FastAPI dependencies ---

async def get_caller(account: Optional[User] = Depends(get_optional_user)) -> Caller:
    return Caller(account=account)


def require_operation(operation: Operation):
    """
    Dependency factory gating a route on one operation.

    Usage:
        @router.put("/{tracking_number}/tracking")
        async def add_event(current_user: User = Depends(require_operation(Operation.RECORD_EVENT))):
            ...

    Anonymous callers get 401 from ``get_current_user``; callers whose policy
    denies the operation get 403.
    """
    async def operation_guard(current_user: User = Depends(get_current_user)) -> User:
        policy = policy_for(Caller(account=current_user))
        if not policy.can_write(operation):
            raise InsufficientPermissionsError(
                f"Access denied. Your role cannot perform {operation.value}",
                details={"operation": operation.value, "role": current_user.role.value}
            )
        return current_user

    return operation_guard
