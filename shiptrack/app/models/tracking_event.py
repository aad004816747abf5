"""
Tracking Event database model.

Append-only history of a shipment. Events are owned by their shipment and
ordered by a per-shipment sequence number.
"""

from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from shiptrack.app.core import clock
from shiptrack.app.db.session import Base
from shiptrack.app.models.shipment_enums import ShipmentStatus


class TrackingEvent(Base):
    """
    Tracking Event model.

    ``(shipment_id, sequence)`` is unique, so two writers racing to append
    the same slot cannot both succeed.
    """
    __tablename__ = "tracking_events"
    __table_args__ = (
        UniqueConstraint("shipment_id", "sequence", name="uq_tracking_events_shipment_sequence"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    shipment_id = Column(Integer, ForeignKey("shipments.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)

    status = Column(Enum(ShipmentStatus), nullable=False)
    location = Column(String(255), nullable=False)
    description = Column(String(500), nullable=False)
    timestamp = Column(DateTime, nullable=False)

    # GPS coordinates (optional)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    # Acting agent (optional)
    agent_name = Column(String(100), nullable=True)
    agent_id = Column(String(50), nullable=True)
    agent_contact = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=clock.utcnow, nullable=False)

    shipment = relationship("Shipment", back_populates="events")

    def __repr__(self):
        return f"<TrackingEvent(shipment_id={self.shipment_id}, seq={self.sequence}, status='{self.status.value}')>"
