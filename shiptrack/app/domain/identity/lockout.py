"""
Account lockout state machine.

    ACTIVE --(max consecutive failures)--> LOCKED --(lock expiry)--> ACTIVE

The state is an immutable value; callers replace it wholesale on the
account, so the counter and the lock timestamp always move together.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Optional

from shiptrack.app.core.config import settings


@dataclass(frozen=True)
class LockoutState:
    failed_attempts: int = 0
    lock_until: Optional[datetime] = None

    def is_locked(self, now: datetime) -> bool:
        return self.lock_until is not None and self.lock_until > now

    def record_failure(
        self,
        now: datetime,
        max_attempts: Optional[int] = None,
        lock_duration: Optional[timedelta] = None,
    ) -> "LockoutState":
        """
        Account for one failed credential check.

        An expired lock restarts the count at 1. Otherwise the counter is
        incremented and, once it reaches ``max_attempts`` on an unlocked
        account, the account is locked for ``lock_duration``.
        """
        if max_attempts is None:
            max_attempts = settings.max_login_attempts
        if lock_duration is None:
            lock_duration = timedelta(minutes=settings.lock_duration_minutes)

        if self.lock_until is not None and self.lock_until <= now:
            return LockoutState(failed_attempts=1, lock_until=None)

        attempts = self.failed_attempts + 1
        if attempts >= max_attempts and not self.is_locked(now):
            return LockoutState(failed_attempts=attempts, lock_until=now + lock_duration)
        return replace(self, failed_attempts=attempts)

    def record_success(self) -> "LockoutState":
        return LockoutState()
