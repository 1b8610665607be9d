"""
In-memory attempt limiter with TTL eviction.

Tracks attempts per key (an email address, a user id) and refuses them when
they come too fast or too often. State lives in one limiter instance that is
handed to whoever needs it; entries expire on access and through purge().

For deployments with several instances, back this with a shared store.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from rentease.errors import RateLimitedError


@dataclass
class AttemptState:
    last_attempt_at: float
    request_count: int = 0
    blocked_until: Optional[float] = None


class AttemptLimiter:
    """
    Resend-gap plus request-count limiter.

    Attributes:
        resend_gap: Minimum seconds between two attempts for the same key
        max_requests: Attempts allowed per window before the key is blocked
        block_seconds: How long a key stays blocked
        window_seconds: Idle time after which a key's state is forgotten

    Example:
        >>> limiter = AttemptLimiter(resend_gap_seconds=60, max_requests=5, block_seconds=600)
        >>> limiter.hit("guest@example.com")
        >>> limiter.hit("guest@example.com")  # raises RateLimitedError: too soon
    """

    def __init__(
        self,
        resend_gap_seconds: int,
        max_requests: int,
        block_seconds: int,
        window_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.resend_gap = resend_gap_seconds
        self.max_requests = max_requests
        self.block_seconds = block_seconds
        self.window_seconds = window_seconds or block_seconds
        self._clock = clock
        self._entries: dict[str, AttemptState] = {}
        self._lock = threading.Lock()

    def _is_expired(self, state: AttemptState, now: float) -> bool:
        if state.blocked_until is not None:
            return now >= state.blocked_until
        return now - state.last_attempt_at >= self.window_seconds

    def _get(self, key: str, now: float) -> Optional[AttemptState]:
        state = self._entries.get(key)
        if state is not None and self._is_expired(state, now):
            del self._entries[key]
            return None
        return state

    def hit(self, key: str) -> None:
        """
        Record an attempt for key.

        Raises:
            RateLimitedError: Key is blocked, the resend gap has not passed, or
                this attempt exceeds max_requests (which starts a block)
        """
        now = self._clock()
        with self._lock:
            state = self._get(key, now)

            if state is not None and state.blocked_until is not None:
                raise RateLimitedError(
                    "Too many attempts. Try again later.",
                    retry_after=int(state.blocked_until - now) + 1,
                )

            if state is not None and now - state.last_attempt_at < self.resend_gap:
                raise RateLimitedError(
                    "Please wait before trying again.",
                    retry_after=int(self.resend_gap - (now - state.last_attempt_at)) + 1,
                )

            if state is None:
                state = AttemptState(last_attempt_at=now)
                self._entries[key] = state

            state.request_count += 1
            state.last_attempt_at = now

            if state.request_count > self.max_requests:
                state.blocked_until = now + self.block_seconds
                state.request_count = 0
                raise RateLimitedError(
                    "Too many attempts. Try again later.",
                    retry_after=self.block_seconds,
                )

    def reset(self, key: str) -> None:
        """Forget a key, e.g. after a successful verification."""
        with self._lock:
            self._entries.pop(key, None)

    def purge(self) -> int:
        """
        Drop every expired entry.

        Returns:
            int: Number of entries removed
        """
        now = self._clock()
        with self._lock:
            expired = [k for k, s in self._entries.items() if self._is_expired(s, now)]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def size(self) -> int:
        with self._lock:
            return len(self._entries)
