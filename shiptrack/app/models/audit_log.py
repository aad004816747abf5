"""
Audit Log Database Model.

Tracks security-critical events and shipment mutations for compliance and
security monitoring.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from shiptrack.app.core import clock
from shiptrack.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - USER_CREATED / PROFILE_UPDATED / PASSWORD_CHANGED / LOGOUT
    - LOGIN_SUCCESS / LOGIN_FAILED / ACCOUNT_LOCKED
    - SHIPMENT_CREATED / TRACKING_EVENT_RECORDED / DELIVERY_ATTEMPT_RECORDED / AGENT_ASSIGNED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for anonymous/system actions)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_email = Column(String(255), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # What it was performed on
    target_user_id = Column(Integer, index=True, nullable=True)
    tracking_number = Column(String(12), index=True, nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    ip_address = Column(String(50), nullable=True)

    timestamp = Column(DateTime, default=clock.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_email})>"
