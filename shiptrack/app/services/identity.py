"""
Identity service.

Registration, credential checks with lockout, profile and password changes,
and logout. Lock fields are only ever written through ``LockoutState``.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.ext.asyncio import AsyncSession

from shiptrack.app.core import clock
from shiptrack.app.core.exceptions import (
    AuthenticationError, AccountLockedError, ConflictError, ConcurrentUpdateError,
    ValidationError, StorageUnavailableError
)
from shiptrack.app.core.jwt import create_access_token, decode_access_token
from shiptrack.app.core.security import get_password_hash, verify_password, is_password_strong
from shiptrack.app.core.token_revocation import revoke_token
from shiptrack.app.domain.identity.lockout import LockoutState
from shiptrack.app.models.enums import UserRole
from shiptrack.app.models.user import User
from shiptrack.app.schemas.auth import UserRegister, ProfileUpdate
from shiptrack.app.services.audit import log_auth_event, log_event, AuditAction

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid login credentials"

# Bounded retries when two logins race on the same account row
LOCKOUT_WRITE_RETRIES = 3


def issue_token(user: User) -> str:
    return create_access_token(data={
        "sub": user.email,
        "user_id": user.id,
        "role": user.role.value,
    })


async def _get_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email.strip().lower()))
    return result.scalar_one_or_none()


async def _save_lockout(
    db: AsyncSession, user: User, transition, last_login: Optional[datetime] = None
) -> LockoutState:
    """
    Apply a lockout transition and commit it.

    On a version conflict the account is reloaded and the transition is
    re-applied to the fresh state.
    """
    for attempt in range(1, LOCKOUT_WRITE_RETRIES + 1):
        user.lockout = transition(user.lockout)
        if last_login is not None:
            user.last_login = last_login
        try:
            await db.commit()
            return user.lockout
        except StaleDataError:
            await db.rollback()
            await db.refresh(user)
            logger.info("Retrying lockout write for user %s (attempt %d)", user.id, attempt)
    raise ConcurrentUpdateError("Account")


class IdentityService:

    @staticmethod
    async def register(db: AsyncSession, data: UserRegister, ip_address: Optional[str] = None) -> User:
        """
        Create a USER account.

        Raises:
            ValidationError: weak password
            ConflictError: email or phone already registered
        """
        ok, message = is_password_strong(data.password)
        if not ok:
            raise ValidationError(message, field="password")

        if await _get_by_email(db, data.email):
            raise ConflictError("User with this email already exists", field="email")

        result = await db.execute(select(User.id).where(User.phone == data.phone))
        if result.scalar_one_or_none() is not None:
            raise ConflictError("User with this phone number already exists", field="phone")

        user = User(
            full_name=data.full_name,
            email=data.email,
            phone=data.phone,
            hashed_password=get_password_hash(data.password),
            role=UserRole.USER,
            is_active=True,
        )
        if data.address:
            user.street = data.address.street
            user.city = data.address.city
            user.state = data.address.state
            user.pincode = data.address.pincode
            user.country = data.address.country

        db.add(user)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise ConflictError("User with this email or phone number already exists") from e

        logger.info("Registered user %s", user.id)
        await log_auth_event(db, AuditAction.USER_CREATED, user.id, user.email, ip_address=ip_address)
        return user

    @staticmethod
    async def find_by_credentials(
        db: AsyncSession,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
    ) -> User:
        """
        Check credentials against the lockout state.

        Unknown accounts and wrong passwords are indistinguishable to the
        caller. A live lock is reported before the password is looked at.

        Raises:
            AuthenticationError: unknown/inactive account or wrong password
            AccountLockedError: the account is inside its lock window
        """
        user = await _get_by_email(db, email)
        if not user or not user.is_active:
            await log_auth_event(
                db, AuditAction.LOGIN_FAILED, user.id if user else None, email.strip().lower(),
                ip_address=ip_address, metadata={"reason": "Unknown or inactive account"}
            )
            raise AuthenticationError(INVALID_CREDENTIALS)

        now = clock.utcnow()
        if user.lockout.is_locked(now):
            await log_auth_event(
                db, AuditAction.LOGIN_FAILED, user.id, user.email,
                ip_address=ip_address, metadata={"reason": "Account locked"}
            )
            raise AccountLockedError()

        if not verify_password(password, user.hashed_password):
            state = await _save_lockout(db, user, lambda s: s.record_failure(now))
            await log_auth_event(
                db, AuditAction.LOGIN_FAILED, user.id, user.email, ip_address=ip_address,
                metadata={"reason": "Invalid password", "failed_attempts": state.failed_attempts}
            )
            if state.is_locked(now):
                logger.warning("Account %s locked until %s", user.id, state.lock_until)
                await log_auth_event(
                    db, AuditAction.ACCOUNT_LOCKED, user.id, user.email, ip_address=ip_address,
                    metadata={"lock_until": state.lock_until.isoformat()}
                )
            raise AuthenticationError(INVALID_CREDENTIALS)

        await _save_lockout(db, user, lambda s: s.record_success(), last_login=now)
        await log_auth_event(db, AuditAction.LOGIN_SUCCESS, user.id, user.email, ip_address=ip_address)
        return user

    @staticmethod
    async def update_profile(db: AsyncSession, user: User, data: ProfileUpdate) -> User:
        """Apply the supplied profile fields; preferences are merged key by key."""
        if data.phone and data.phone != user.phone:
            result = await db.execute(select(User.id).where(User.phone == data.phone, User.id != user.id))
            if result.scalar_one_or_none() is not None:
                raise ConflictError("Phone number is already in use", field="phone")
            user.phone = data.phone

        if data.full_name:
            user.full_name = data.full_name.strip()

        if data.address:
            for name, value in data.address.model_dump(exclude_unset=True).items():
                setattr(user, name, value)

        if data.preferences:
            # JSON columns are not mutation-tracked; assign a new dict
            merged = dict(user.preferences or {})
            update = data.preferences.model_dump(exclude_none=True, mode="json")
            if "notifications" in update:
                merged["notifications"] = {**merged.get("notifications", {}), **update.pop("notifications")}
            merged.update(update)
            user.preferences = merged

        try:
            await db.commit()
        except StaleDataError as e:
            await db.rollback()
            raise ConcurrentUpdateError("Account") from e
        except IntegrityError as e:
            await db.rollback()
            raise ConflictError("Phone number is already in use", field="phone") from e

        await log_event(
            db, AuditAction.PROFILE_UPDATED, actor_id=user.id, actor_email=user.email,
            target_user_id=user.id, metadata={"fields": sorted(data.model_dump(exclude_none=True))}
        )
        return user

    @staticmethod
    async def change_password(db: AsyncSession, user: User, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user.hashed_password):
            raise ValidationError("Current password is incorrect", field="current_password")

        ok, message = is_password_strong(new_password)
        if not ok:
            raise ValidationError(message, field="new_password")

        user.hashed_password = get_password_hash(new_password)
        try:
            await db.commit()
        except StaleDataError as e:
            await db.rollback()
            raise ConcurrentUpdateError("Account") from e

        await log_event(db, AuditAction.PASSWORD_CHANGED, actor_id=user.id, actor_email=user.email, target_user_id=user.id)

    @staticmethod
    async def logout(db: AsyncSession, user: User, token: str) -> None:
        """Blacklist the presented token until its natural expiry."""
        if not await revoke_token(token, user.id, decode_access_token(token)):
            raise StorageUnavailableError("Token revocation store is unavailable")
        await log_event(db, AuditAction.LOGOUT, actor_id=user.id, actor_email=user.email, target_user_id=user.id)
