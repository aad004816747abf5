"""
Shipment API endpoints.

Public tracking lookup, booking, the caller's shipment list, and the
agent/admin write paths. All status changes go through the shipment ledger.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from shiptrack.app.core import clock
from shiptrack.app.core.access_policy import (
    Caller, Operation, ShipmentView, Tier, get_caller, policy_for, require_operation,
    full_event_view, build_staff_view
)
from shiptrack.app.core.dependencies import get_current_user
from shiptrack.app.core.exceptions import ResourceNotFoundError
from shiptrack.app.db.session import get_db
from shiptrack.app.domain.tracking.ledger import ShipmentLedger, agent_identity_for
from shiptrack.app.models.shipment import Shipment
from shiptrack.app.models.shipment_enums import ShipmentStatus
from shiptrack.app.models.user import User
from shiptrack.app.schemas.shipment import (
    ShipmentCreate, ShipmentCreatedResponse, ShipmentListResponse, ServiceOut, Insurance,
    TrackingEventCreate, TrackingEventRecordedResponse, DeliveryAttemptResponse,
    AssignAgentRequest, StaffShipmentView
)
from shiptrack.app.services.audit import log_event, AuditAction
from shiptrack.app.services.shipment_queries import ShipmentQueryService

router = APIRouter(prefix="/shipments", tags=["Shipments"])


async def _load_shipment(db: AsyncSession, tracking_number: str) -> Shipment:
    shipment = await ShipmentLedger.find_by_tracking_number(db, tracking_number)
    if not shipment:
        raise ResourceNotFoundError("Shipment", tracking_number)
    return shipment


@router.get("/track/{tracking_number}", response_model=ShipmentView)
async def track_shipment(
    tracking_number: str = Path(..., max_length=20, description="Tracking number, e.g. IND123456789"),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """
    Look up a shipment by tracking number (public).

    Anonymous callers, and signed-in callers with no association to the
    shipment, get the public view. Owners and staff get the full record.
    """
    shipment = await _load_shipment(db, tracking_number)
    policy = policy_for(caller)

    parties = None
    if policy.tier(shipment) != Tier.PUBLIC:
        parties = await ShipmentLedger.resolve_parties(db, shipment)

    return policy.visible_fields(shipment, clock.utcnow(), parties)


@router.post("", response_model=ShipmentCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_shipment(
    shipment_data: ShipmentCreate,
    current_user: User = Depends(require_operation(Operation.CREATE_SHIPMENT)),
    db: AsyncSession = Depends(get_db)
):
    """Book a new shipment; the tracking number is generated when not supplied."""
    shipment = await ShipmentLedger.create_shipment(db, shipment_data, current_user)

    await log_event(
        db=db,
        action=AuditAction.SHIPMENT_CREATED,
        actor_id=current_user.id,
        actor_email=current_user.email,
        tracking_number=shipment.tracking_number,
        metadata={
            "service_type": shipment.service_type.value,
            "client_supplied_number": shipment_data.tracking_number is not None,
        }
    )

    return ShipmentCreatedResponse(
        tracking_number=shipment.tracking_number,
        current_status=shipment.current_status,
        progress=shipment.progress,
        estimated_delivery=shipment.estimated_delivery,
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
        created_at=shipment.created_at,
    )


@router.get("/my", response_model=ShipmentListResponse)
async def list_my_shipments(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(10, ge=1, le=100, description="Items per page"),
    status_filter: Optional[ShipmentStatus] = Query(None, alias="status", description="Filter by status"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    List shipments the caller created, sends, or receives.

    Newest first. Shipments without an association never appear here,
    whatever the caller's role.
    """
    shipments, pagination = await ShipmentQueryService.find_by_user(
        db, current_user, page=page, limit=limit, status=status_filter
    )
    parties = await ShipmentQueryService.resolve_parties_for(db, shipments)

    policy = policy_for(Caller(account=current_user))
    now = clock.utcnow()
    return ShipmentListResponse(
        shipments=[policy.visible_fields(s, now, parties.get(s.id)) for s in shipments],
        pagination=pagination,
    )


@router.put("/{tracking_number}/tracking", response_model=TrackingEventRecordedResponse)
async def add_tracking_event(
    event: TrackingEventCreate,
    tracking_number: str = Path(..., max_length=20, description="Tracking number, e.g. IND123456789"),
    current_user: User = Depends(require_operation(Operation.RECORD_EVENT)),
    db: AsyncSession = Depends(get_db)
):
    """
    Append a tracking event (agents and admins).

    Illegal transitions and lost races are reported as 409.
    """
    shipment = await _load_shipment(db, tracking_number)
    recorded = await ShipmentLedger.record_event(db, shipment, event, agent=agent_identity_for(current_user))

    await log_event(
        db=db,
        action=AuditAction.TRACKING_EVENT_RECORDED,
        actor_id=current_user.id,
        actor_email=current_user.email,
        tracking_number=shipment.tracking_number,
        metadata={"status": event.status.value, "location": event.location, "sequence": recorded.sequence}
    )

    return TrackingEventRecordedResponse(
        tracking_number=shipment.tracking_number,
        current_status=shipment.current_status,
        progress=shipment.progress,
        latest_event=full_event_view(recorded),
    )


@router.post("/{tracking_number}/delivery-attempts", response_model=DeliveryAttemptResponse)
async def record_delivery_attempt(
    tracking_number: str = Path(..., max_length=20, description="Tracking number, e.g. IND123456789"),
    current_user: User = Depends(require_operation(Operation.RECORD_DELIVERY_ATTEMPT)),
    db: AsyncSession = Depends(get_db)
):
    """Count a failed delivery attempt; the third one raises an exception event."""
    shipment = await _load_shipment(db, tracking_number)
    outcome = await ShipmentLedger.increment_delivery_attempt(db, shipment, agent=agent_identity_for(current_user))

    await log_event(
        db=db,
        action=AuditAction.DELIVERY_ATTEMPT_RECORDED,
        actor_id=current_user.id,
        actor_email=current_user.email,
        tracking_number=shipment.tracking_number,
        metadata={"delivery_attempts": shipment.delivery_attempts}
    )

    return DeliveryAttemptResponse(
        tracking_number=shipment.tracking_number,
        delivery_attempts=shipment.delivery_attempts,
        current_status=shipment.current_status,
        progress=shipment.progress,
        exception_raised=outcome.exception_event is not None,
    )


@router.put("/{tracking_number}/agent", response_model=StaffShipmentView)
async def assign_agent(
    payload: AssignAgentRequest,
    tracking_number: str = Path(..., max_length=20, description="Tracking number, e.g. IND123456789"),
    current_user: User = Depends(require_operation(Operation.ASSIGN_AGENT)),
    db: AsyncSession = Depends(get_db)
):
    """Assign a delivery agent to a shipment (admin only)."""
    shipment = await _load_shipment(db, tracking_number)
    await ShipmentLedger.assign_agent(db, shipment, payload.agent_id)

    await log_event(
        db=db,
        action=AuditAction.AGENT_ASSIGNED,
        actor_id=current_user.id,
        actor_email=current_user.email,
        target_user_id=payload.agent_id,
        tracking_number=shipment.tracking_number,
    )

    parties = await ShipmentLedger.resolve_parties(db, shipment)
    return build_staff_view(shipment, clock.utcnow(), parties)
