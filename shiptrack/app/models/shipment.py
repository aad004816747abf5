"""
Shipment database model.

A shipment is booked by a user and advanced through its lifecycle by agents
posting tracking events. Status, progress and terminal timestamps are written
only by the shipment ledger.
"""

from sqlalchemy import (
    Column, Integer, String, Float, DateTime, Enum, Boolean, Text, CheckConstraint
)
from sqlalchemy.orm import relationship
from shiptrack.app.core import clock
from shiptrack.app.db.session import Base
from shiptrack.app.models.shipment_enums import (
    ShipmentStatus, PackageCategory, ServiceType, ServicePriority,
    PaymentStatus, PaymentMethod
)
from shiptrack.app.models.tracking_event import TrackingEvent
from shiptrack.app.domain.tracking.state_machine import MAX_DELIVERY_ATTEMPTS


class Shipment(Base):
    """
    Shipment model.

    Sender, recipient, package and service blocks are stored as flat columns;
    the API nests them back into objects.
    """
    __tablename__ = "shipments"
    __table_args__ = (
        CheckConstraint("progress >= 0 AND progress <= 100", name="ck_shipments_progress_range"),
        CheckConstraint(
            f"delivery_attempts >= 0 AND delivery_attempts <= {MAX_DELIVERY_ATTEMPTS}",
            name="ck_shipments_delivery_attempts"
        ),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Public identifier, immutable once assigned
    tracking_number = Column(String(12), unique=True, nullable=False, index=True)

    # Sender
    sender_name = Column(String(100), nullable=False)
    sender_email = Column(String(255), nullable=False, index=True)
    sender_phone = Column(String(10), nullable=False)
    sender_street = Column(String(255), nullable=False)
    sender_city = Column(String(100), nullable=False)
    sender_state = Column(String(100), nullable=False)
    sender_pincode = Column(String(6), nullable=False)
    sender_country = Column(String(100), nullable=False, default="India")

    # Recipient
    recipient_name = Column(String(100), nullable=False)
    recipient_email = Column(String(255), nullable=True, index=True)
    recipient_phone = Column(String(10), nullable=False)
    recipient_street = Column(String(255), nullable=False)
    recipient_city = Column(String(100), nullable=False)
    recipient_state = Column(String(100), nullable=False)
    recipient_pincode = Column(String(6), nullable=False)
    recipient_country = Column(String(100), nullable=False, default="India")

    # Package
    package_description = Column(String(500), nullable=False)
    package_weight_kg = Column(Float, nullable=False)
    package_length_cm = Column(Float, nullable=False)
    package_width_cm = Column(Float, nullable=False)
    package_height_cm = Column(Float, nullable=False)
    package_value = Column(Float, nullable=False)
    package_category = Column(Enum(PackageCategory), default=PackageCategory.OTHER, nullable=False)
    package_is_fragile = Column(Boolean, default=False, nullable=False)
    package_requires_signature = Column(Boolean, default=False, nullable=False)

    # Service
    service_type = Column(Enum(ServiceType), nullable=False)
    service_priority = Column(Enum(ServicePriority), default=ServicePriority.NORMAL, nullable=False)
    service_cost = Column(Float, nullable=False)
    estimated_delivery = Column(DateTime, nullable=False, index=True)
    insurance_is_insured = Column(Boolean, default=False, nullable=False)
    insurance_coverage = Column(Float, default=0, nullable=False)
    insurance_premium = Column(Float, default=0, nullable=False)

    # Lifecycle
    current_status = Column(Enum(ShipmentStatus), default=ShipmentStatus.ORDER_PLACED, nullable=False, index=True)
    progress = Column(Integer, default=10, nullable=False)
    delivery_attempts = Column(Integer, default=0, nullable=False)

    # Payment
    payment_status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    payment_method = Column(Enum(PaymentMethod), default=PaymentMethod.ONLINE, nullable=False)

    special_instructions = Column(Text, nullable=True)
    internal_notes = Column(Text, nullable=True)

    # Weak references into users (lookup only)
    created_by_id = Column(Integer, nullable=False, index=True)
    assigned_agent_id = Column(Integer, nullable=True, index=True)

    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Terminal timestamps
    delivered_at = Column(DateTime, nullable=True)
    returned_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=clock.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=clock.utcnow, nullable=False)

    # Optimistic concurrency: every ledger write bumps the version
    version = Column(Integer, nullable=False)

    events = relationship(
        TrackingEvent,
        back_populates="shipment",
        cascade="all, delete-orphan",
        order_by=TrackingEvent.sequence,
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Shipment(id={self.id}, tracking='{self.tracking_number}', status='{self.current_status.value}')>"
