"""Sliding-window limiter for PIN confirmations.

Failed attempts are counted per account inside a rolling window. Reaching
the threshold locks that account's PIN for a fixed period; a correct PIN
clears the window.
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field

from storda.config import settings
from storda.errors import AuthenticationError, LockedOutError
from storda.utils.security import verify_pin

logger = logging.getLogger(__name__)


@dataclass
class PinAttempts:
    failures: deque = field(default_factory=deque)
    lockout_until: float = 0.0


class PinRateLimiter:
    def __init__(self, max_attempts: int, window_seconds: float, lockout_seconds: float, clock=time.monotonic):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.lockout_seconds = lockout_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._state: dict[str, PinAttempts] = {}

    def _prune(self, state: PinAttempts, now: float) -> None:
        while state.failures and now - state.failures[0] > self.window_seconds:
            state.failures.popleft()

    def check(self, key: str) -> None:
        """Raise LockedOutError if the key is currently locked."""
        now = self._clock()
        with self._lock:
            state = self._state.get(key)
            if state and state.lockout_until > now:
                raise LockedOutError(int(state.lockout_until - now) + 1)

    def record_failure(self, key: str) -> int:
        """Count a failed attempt. Returns attempts left before lockout (0 = now locked)."""
        now = self._clock()
        with self._lock:
            state = self._state.setdefault(key, PinAttempts())
            self._prune(state, now)
            state.failures.append(now)
            remaining = self.max_attempts - len(state.failures)
            if remaining <= 0:
                state.lockout_until = now + self.lockout_seconds
                state.failures.clear()
                logger.warning("PIN locked for %s after %d failed attempts", key, self.max_attempts)
                return 0
            return remaining

    def record_success(self, key: str) -> None:
        with self._lock:
            self._state.pop(key, None)

    def reset(self) -> None:
        with self._lock:
            self._state.clear()


pin_limiter = PinRateLimiter(
    max_attempts=settings.pin_max_attempts,
    window_seconds=settings.pin_window_seconds,
    lockout_seconds=settings.pin_lockout_seconds,
)


def confirm_pin(account, pin: str, limiter: PinRateLimiter = pin_limiter) -> None:
    """Check an account's PIN through the limiter.

    Raises LockedOutError while locked, AuthenticationError on mismatch.
    """
    limiter.check(account.id)
    if verify_pin(pin or "", account.pin_hash):
        limiter.record_success(account.id)
        return

    remaining = limiter.record_failure(account.id)
    if remaining == 0:
        raise LockedOutError(int(limiter.lockout_seconds))
    raise AuthenticationError("Incorrect PIN", remaining_attempts=remaining, field="pin")
