"""
Login Throttling Service

WHY: Prevent brute-force password attacks by limiting failed login attempts.
After too many failures for one email, further attempts are refused until
the window passes.

Best effort: state is process local and reset on restart, like the request
rate limiter.
"""

from __future__ import annotations

import threading
from collections import defaultdict, deque
from datetime import timedelta

from ..time_utils import utcnow


# Configuration constants
MAX_FAILED_ATTEMPTS = 5  # Lock after 5 failed attempts
LOCKOUT_WINDOW = timedelta(minutes=15)  # Within 15 minutes

_lock = threading.Lock()
_failures: dict[str, deque] = defaultdict(deque)


def _key(identifier: str) -> str:
    return (identifier or "").strip().lower()


def _prune(attempts: deque, now) -> None:
    cutoff = now - LOCKOUT_WINDOW
    while attempts and attempts[0] < cutoff:
        attempts.popleft()


def is_account_locked(identifier: str, *, now=None) -> tuple[bool, int | None]:
    """
    Returns:
    - (True, seconds_remaining) if locked
    - (False, None) if not locked
    """
    now = now or utcnow()
    with _lock:
        attempts = _failures.get(_key(identifier))
        if not attempts:
            return False, None
        _prune(attempts, now)
        if len(attempts) < MAX_FAILED_ATTEMPTS:
            return False, None
        unlock_at = attempts[-MAX_FAILED_ATTEMPTS] + LOCKOUT_WINDOW
        return True, max(1, int((unlock_at - now).total_seconds()))


def record_failed_attempt(identifier: str, *, now=None) -> int:
    """Record a failed login attempt; returns the recent failure count."""
    now = now or utcnow()
    with _lock:
        attempts = _failures[_key(identifier)]
        _prune(attempts, now)
        attempts.append(now)
        return len(attempts)


def record_successful_login(identifier: str) -> None:
    """A successful login clears the failure history for that identifier."""
    with _lock:
        _failures.pop(_key(identifier), None)


def reset() -> None:
    with _lock:
        _failures.clear()
