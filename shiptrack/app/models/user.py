"""
User database model.

This module defines the User SQLAlchemy model for authentication
and the lockout state that guards credential checks.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, JSON
from shiptrack.app.core import clock
from shiptrack.app.db.session import Base
from shiptrack.app.domain.identity.lockout import LockoutState
from shiptrack.app.models.enums import UserRole


def default_preferences() -> dict:
    return {
        "notifications": {"email": True, "sms": True, "push": True},
        "language": "en",
        "theme": "light",
    }


class User(Base):
    """
    User model for authentication and account management.

    Accounts are never deleted; ``is_active`` is the soft-deactivation switch.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    full_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(10), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), default=UserRole.USER, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_email_verified = Column(Boolean, default=False, nullable=False)
    is_phone_verified = Column(Boolean, default=False, nullable=False)

    # Postal address (optional)
    street = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    pincode = Column(String(6), nullable=True)
    country = Column(String(100), default="India", nullable=True)

    preferences = Column(JSON, default=default_preferences, nullable=False)

    # Lockout state, written only through the `lockout` property
    failed_login_attempts = Column(Integer, default=0, nullable=False)
    lock_until = Column(DateTime, nullable=True)
    last_login = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=clock.utcnow, nullable=False)
    updated_at = Column(DateTime, default=clock.utcnow, onupdate=clock.utcnow, nullable=False)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def lockout(self) -> LockoutState:
        return LockoutState(
            failed_attempts=self.failed_login_attempts or 0,
            lock_until=self.lock_until,
        )

    @lockout.setter
    def lockout(self, state: LockoutState):
        self.failed_login_attempts = state.failed_attempts
        self.lock_until = state.lock_until

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role.value}')>"
