"""Per-caller request throttling.

State is in-memory and per process: it resets on restart and is not shared
between replicas. Put a shared store in front if that matters.
"""

import logging
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass

logger = logging.getLogger(__name__)

RATE_LIMIT = 10
WINDOW_SECONDS = 15 * 60
SWEEP_EVERY = 1000

UNKNOWN_IDENTITY = "unknown"


@dataclass
class RateLimitEntry:
    """Request count for one caller within its current window."""

    identity: str
    count: int
    reset_at: float


class RateLimiter:
    """Fixed-window counter keyed by caller identity.

    Every sweep_every admissions, expired entries are evicted so that callers
    who never return do not accumulate.
    """

    def __init__(
        self,
        limit: int = RATE_LIMIT,
        window_seconds: float = WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sweep_every: int = SWEEP_EVERY,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self.sweep_every = sweep_every
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}
        self._calls = 0
        self._lock = threading.Lock()

    def allow(self, identity: str) -> bool:
        """Record a request from identity and report whether it is admitted."""
        with self._lock:
            now = self._clock()
            self._calls += 1
            if self.sweep_every and self._calls % self.sweep_every == 0:
                self._evict_expired(now)

            entry = self._entries.get(identity)
            if entry is None or now > entry.reset_at:
                self._entries[identity] = RateLimitEntry(
                    identity=identity,
                    count=1,
                    reset_at=now + self.window_seconds,
                )
                return True
            if entry.count >= self.limit:
                return False
            entry.count += 1
            return True

    def sweep(self) -> int:
        """Drop entries whose window has elapsed. Returns how many were removed."""
        with self._lock:
            return self._evict_expired(self._clock())

    def _evict_expired(self, now: float) -> int:
        # Caller holds self._lock.
        expired = [key for key, entry in self._entries.items() if now > entry.reset_at]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.info(f"Evicted {len(expired)} expired rate limit entries")
        return len(expired)

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()
            self._calls = 0

    def __len__(self) -> int:
        return len(self._entries)


def client_identity(headers: Mapping[str, str]) -> str:
    """Caller identity from the proxy's X-Forwarded-For header.

    Only the first (client) address is used. Callers without the header all
    share the "unknown" identity and therefore one quota.
    """
    forwarded = headers.get("x-forwarded-for") or ""
    first = forwarded.split(",")[0].strip()
    return first or UNKNOWN_IDENTITY
