"""
Shipment Ledger.

Owns the shipment record and its append-only tracking history. Every write
that touches status, progress, terminal timestamps or the delivery-attempt
counter goes through this module, and each one commits the event append and
the shipment update in a single transaction.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Dict

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, DBAPIError
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.ext.asyncio import AsyncSession

from shiptrack.app.core import clock
from shiptrack.app.core.config import settings
from shiptrack.app.core.exceptions import (
    ConflictError, ConcurrentUpdateError, InvalidStatusTransitionError,
    DeliveryAttemptsExhaustedError, StorageUnavailableError, TrackingNumberExhaustedError, ValidationError
)
from shiptrack.app.domain.tracking import state_machine
from shiptrack.app.domain.tracking.tracking_numbers import (
    generate_tracking_number, normalize_tracking_number, is_valid_tracking_number, tracking_number_exists
)
from shiptrack.app.models.enums import UserRole
from shiptrack.app.models.shipment import Shipment
from shiptrack.app.models.shipment_enums import ShipmentStatus, ServiceType, PaymentStatus
from shiptrack.app.models.tracking_event import TrackingEvent
from shiptrack.app.models.user import User
from shiptrack.app.schemas.shipment import ShipmentCreate, TrackingEventCreate, AgentIdentity

logger = logging.getLogger(__name__)

# Offset from booking time to the estimated delivery, per service level
SERVICE_DELIVERY_OFFSETS = {
    ServiceType.HYPERLOCAL: timedelta(hours=6),
    ServiceType.SAME_DAY: timedelta(days=1),
    ServiceType.NEXT_DAY: timedelta(days=2),
    ServiceType.STANDARD: timedelta(days=4),
    ServiceType.ECONOMY: timedelta(days=7),
    ServiceType.EXPRESS: timedelta(days=1),
}


@dataclass
class DeliveryAttemptOutcome:
    shipment: Shipment
    exception_event: Optional[TrackingEvent] = None


def estimate_delivery(service_type: ServiceType, booked_at: datetime) -> datetime:
    return booked_at + SERVICE_DELIVERY_OFFSETS[service_type]


def agent_identity_for(user: User) -> AgentIdentity:
    return AgentIdentity(name=user.full_name, id=str(user.id), contact=user.phone)


def _append_event(
    shipment: Shipment,
    status: ShipmentStatus,
    location: str,
    description: str,
    timestamp: datetime,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    agent: Optional[AgentIdentity] = None,
) -> TrackingEvent:
    """
    Apply one event to a loaded shipment (no I/O).

    Status, progress and terminal timestamps change together with the append.
    """
    if not state_machine.can_transition(shipment.current_status, status):
        raise InvalidStatusTransitionError(shipment.current_status.value, status.value)

    event = TrackingEvent(
        sequence=len(shipment.events) + 1,
        status=status,
        location=location,
        description=description,
        timestamp=timestamp,
        latitude=latitude,
        longitude=longitude,
        agent_name=agent.name if agent else None,
        agent_id=agent.id if agent else None,
        agent_contact=agent.contact if agent else None,
    )
    shipment.events.append(event)

    shipment.current_status = status
    shipment.progress = state_machine.progress_for(status, shipment.progress)

    stamp_field = state_machine.terminal_timestamp_field(status)
    if stamp_field:
        setattr(shipment, stamp_field, timestamp)
    if status == ShipmentStatus.CANCELLED:
        shipment.cancellation_reason = description

    shipment.updated_at = clock.utcnow()
    return event


async def _commit_shipment(db: AsyncSession, shipment: Shipment):
    """Commit a ledger write, translating lost races into ConcurrentUpdateError."""
    # Rollback expires the instance, so read the key first
    tracking_number = shipment.tracking_number
    try:
        await db.commit()
    except (StaleDataError, IntegrityError) as e:
        await db.rollback()
        logger.warning("Concurrent update on shipment %s: %s", tracking_number, e)
        raise ConcurrentUpdateError() from e
    except DBAPIError as e:
        await db.rollback()
        logger.error("Ledger write failed for %s: %s", tracking_number, e)
        raise StorageUnavailableError() from e


def _new_shipment(data: ShipmentCreate, tracking_number: str, creator_id: int, now: datetime) -> Shipment:
    """Unsaved shipment in ORDER_PLACED with its initial event."""
    sender, recipient, package, service = data.sender, data.recipient, data.package, data.service

    return Shipment(
        tracking_number=tracking_number,
        sender_name=sender.name,
        sender_email=sender.email,
        sender_phone=sender.phone,
        sender_street=sender.address.street,
        sender_city=sender.address.city,
        sender_state=sender.address.state,
        sender_pincode=sender.address.pincode,
        sender_country=sender.address.country,
        recipient_name=recipient.name,
        recipient_email=recipient.email,
        recipient_phone=recipient.phone,
        recipient_street=recipient.address.street,
        recipient_city=recipient.address.city,
        recipient_state=recipient.address.state,
        recipient_pincode=recipient.address.pincode,
        recipient_country=recipient.address.country,
        package_description=package.description,
        package_weight_kg=package.weight,
        package_length_cm=package.dimensions.length,
        package_width_cm=package.dimensions.width,
        package_height_cm=package.dimensions.height,
        package_value=package.value,
        package_category=package.category,
        package_is_fragile=package.is_fragile,
        package_requires_signature=package.requires_signature,
        service_type=service.type,
        service_priority=service.priority,
        service_cost=service.cost,
        estimated_delivery=estimate_delivery(service.type, now),
        insurance_is_insured=service.insurance.is_insured,
        insurance_coverage=service.insurance.coverage,
        insurance_premium=service.insurance.premium,
        current_status=ShipmentStatus.ORDER_PLACED,
        progress=state_machine.STATUS_PROGRESS[ShipmentStatus.ORDER_PLACED],
        delivery_attempts=0,
        payment_status=PaymentStatus.PENDING,
        payment_method=data.payment_method,
        special_instructions=data.special_instructions,
        created_by_id=creator_id,
        assigned_agent_id=None,
        is_active=True,
        created_at=now,
        updated_at=now,
        events=[
            TrackingEvent(
                sequence=1,
                status=ShipmentStatus.ORDER_PLACED,
                location=f"{sender.address.city}, {sender.address.state}",
                description=state_machine.INITIAL_EVENT_DESCRIPTION,
                timestamp=now,
            )
        ],
    )


async def _tracking_number_taken(db: AsyncSession, tracking_number: str) -> bool:
    try:
        return await tracking_number_exists(db, tracking_number)
    except DBAPIError as e:
        raise StorageUnavailableError() from e


class ShipmentLedger:

    @staticmethod
    async def create_shipment(db: AsyncSession, data: ShipmentCreate, creator: User) -> Shipment:
        """
        Book a shipment in ORDER_PLACED with its initial tracking event.

        A tracking number is generated only when the client did not supply one.
        If a generated number is taken by a concurrent booking before the
        insert lands, a fresh one is drawn, within the configured retry budget.
        Nothing is persisted unless the whole record commits.

        Raises:
            ValidationError: supplied number has the wrong prefix, or the record
                violates a storage constraint
            ConflictError: the supplied tracking number is already in use
            TrackingNumberExhaustedError: every generated number collided
        """
        now = clock.utcnow()
        # Rollback expires the creator; keep the key
        creator_id = creator.id

        supplied = data.tracking_number
        if supplied:
            prefix = settings.tracking_number_prefix.upper()
            if not supplied.startswith(prefix):
                raise ValidationError(
                    f"Tracking number must start with {prefix}", field="tracking_number"
                )

        max_attempts = settings.tracking_number_max_attempts
        for attempt in range(1, max_attempts + 1):
            tracking_number = supplied or await generate_tracking_number(db)
            shipment = _new_shipment(data, tracking_number, creator_id, now)

            db.add(shipment)
            try:
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                if creator in db:
                    await db.refresh(creator)
                if not await _tracking_number_taken(db, tracking_number):
                    logger.error("Shipment insert rejected by a constraint: %s", e)
                    raise ValidationError("Shipment data violates a storage constraint") from e
                if supplied:
                    raise ConflictError(
                        f"Tracking number {tracking_number} is already in use", field="tracking_number"
                    ) from e
                logger.warning(
                    "Generated tracking number %s taken concurrently (attempt %d/%d)",
                    tracking_number, attempt, max_attempts
                )
                continue
            except DBAPIError as e:
                await db.rollback()
                raise StorageUnavailableError() from e

            logger.info("Shipment %s created by user %s", tracking_number, creator_id)
            return shipment

        raise TrackingNumberExhaustedError(max_attempts)

    @staticmethod
    async def record_event(
        db: AsyncSession,
        shipment: Shipment,
        event: TrackingEventCreate,
        agent: Optional[AgentIdentity] = None,
    ) -> TrackingEvent:
        """
        Append a tracking event and move the shipment to the event's status.

        Raises:
            InvalidStatusTransitionError: the transition is not allowed
            ConcurrentUpdateError: another writer updated the shipment first
        """
        timestamp = clock.to_naive_utc(event.timestamp) if event.timestamp else clock.utcnow()
        previous = shipment.current_status

        tracking_event = _append_event(
            shipment,
            status=event.status,
            location=event.location,
            description=event.description,
            timestamp=timestamp,
            latitude=event.coordinates.latitude if event.coordinates else None,
            longitude=event.coordinates.longitude if event.coordinates else None,
            agent=agent,
        )
        await _commit_shipment(db, shipment)

        logger.info(
            "Shipment %s moved %s -> %s", shipment.tracking_number, previous.value, event.status.value
        )
        return tracking_event

    @staticmethod
    async def increment_delivery_attempt(
        db: AsyncSession,
        shipment: Shipment,
        agent: Optional[AgentIdentity] = None,
    ) -> DeliveryAttemptOutcome:
        """
        Count a failed delivery attempt.

        Reaching the cap raises an EXCEPTION event through the regular
        transition path, committed together with the counter.
        """
        if state_machine.is_terminal(shipment.current_status):
            raise InvalidStatusTransitionError(shipment.current_status.value, ShipmentStatus.EXCEPTION.value)
        if shipment.delivery_attempts >= state_machine.MAX_DELIVERY_ATTEMPTS:
            raise DeliveryAttemptsExhaustedError(state_machine.MAX_DELIVERY_ATTEMPTS)

        shipment.delivery_attempts += 1
        shipment.updated_at = clock.utcnow()

        exception_event = None
        if shipment.delivery_attempts >= state_machine.MAX_DELIVERY_ATTEMPTS:
            exception_event = _append_event(
                shipment,
                status=ShipmentStatus.EXCEPTION,
                location=state_machine.MAX_ATTEMPTS_LOCATION,
                description=state_machine.MAX_ATTEMPTS_DESCRIPTION,
                timestamp=clock.utcnow(),
                agent=agent,
            )

        await _commit_shipment(db, shipment)
        return DeliveryAttemptOutcome(shipment=shipment, exception_event=exception_event)

    @staticmethod
    async def assign_agent(db: AsyncSession, shipment: Shipment, agent_id: int) -> Shipment:
        """Point the shipment's assigned-agent reference at an active agent."""
        result = await db.execute(select(User).where(User.id == agent_id, User.is_active == True))
        agent = result.scalar_one_or_none()
        if not agent or agent.role != UserRole.AGENT:
            raise ValidationError("Assigned user must be an active agent", field="agent_id")

        shipment.assigned_agent_id = agent.id
        shipment.updated_at = clock.utcnow()
        await _commit_shipment(db, shipment)
        return shipment

    @staticmethod
    async def find_by_tracking_number(db: AsyncSession, code: str) -> Optional[Shipment]:
        """
        Look up an active shipment; the letter prefix is case-insensitive.

        Returns None when no active shipment matches.

        Raises:
            ValidationError: the code is not three letters and nine digits
        """
        tracking_number = normalize_tracking_number(code)
        if not is_valid_tracking_number(tracking_number):
            raise ValidationError(
                "Tracking number must be 3 letters followed by 9 digits, e.g. IND123456789",
                field="tracking_number"
            )
        result = await db.execute(
            select(Shipment).where(
                Shipment.tracking_number == tracking_number,
                Shipment.is_active == True
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def resolve_parties(db: AsyncSession, shipment: Shipment) -> Dict[str, Optional[User]]:
        """Resolve the creator and assigned-agent weak references."""
        ids = {i for i in (shipment.created_by_id, shipment.assigned_agent_id) if i is not None}
        users = {}
        if ids:
            result = await db.execute(select(User).where(User.id.in_(list(ids))))
            users = {user.id: user for user in result.scalars().all()}
        return {
            "created_by": users.get(shipment.created_by_id),
            "assigned_agent": users.get(shipment.assigned_agent_id),
        }
