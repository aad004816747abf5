"""
Unit tests for the account lockout value object.
"""

from datetime import datetime, timedelta

from shiptrack.app.domain.identity.lockout import LockoutState

NOW = datetime(2026, 5, 1, 8, 0, 0)
TWO_HOURS = timedelta(hours=2)


def fail(state, times, now=NOW):
    for _ in range(times):
        state = state.record_failure(now, max_attempts=5, lock_duration=TWO_HOURS)
    return state


def test_three_failures_do_not_lock():
    state = fail(LockoutState(), 3)
    assert state.failed_attempts == 3
    assert state.lock_until is None
    assert not state.is_locked(NOW)


def test_fifth_failure_locks_for_two_hours():
    state = fail(LockoutState(), 5)
    assert state.failed_attempts == 5
    assert state.lock_until == NOW + TWO_HOURS
    assert state.is_locked(NOW + timedelta(minutes=119))
    assert not state.is_locked(NOW + TWO_HOURS)


def test_failure_while_locked_does_not_extend_lock():
    locked = fail(LockoutState(), 5)
    later = NOW + timedelta(minutes=30)
    state = locked.record_failure(later, max_attempts=5, lock_duration=TWO_HOURS)
    assert state.failed_attempts == 6
    assert state.lock_until == locked.lock_until


def test_failure_after_expired_lock_restarts_count():
    locked = fail(LockoutState(), 5)
    state = locked.record_failure(NOW + timedelta(hours=3), max_attempts=5, lock_duration=TWO_HOURS)
    assert state == LockoutState(failed_attempts=1, lock_until=None)


def test_success_resets_state():
    assert fail(LockoutState(), 4).record_success() == LockoutState()
