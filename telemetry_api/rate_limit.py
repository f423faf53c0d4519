"""Per-client fixed-window rate limiting."""
from dataclasses import dataclass
import threading
import time
from typing import Callable
import structlog
from .errors import AdmissionDenied

log = structlog.get_logger()

UNKNOWN_PARTITION = "unknown"


@dataclass
class _Window:
    started_at: float
    count: int = 0


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after: float = 0.0


class FixedWindowRateLimiter:
    """
    Fixed-window admission control keyed by partition (client address).

    Each partition admits at most ``permit_limit`` requests per window of
    ``window_seconds``. There is no queue: a request is admitted or refused
    immediately. The window check and counter update happen under one lock,
    so concurrent requests sharing a partition cannot both take the last
    permit.
    """

    def __init__(
        self,
        permit_limit: int = 100,
        window_seconds: float = 60.0,
        retry_after_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        max_partitions: int = 10000,
    ):
        """
        Initialize rate limiter.

        Args:
            permit_limit: Requests admitted per partition per window
            window_seconds: Window length in seconds
            retry_after_seconds: Backoff hint given on refusal
                (defaults to the window length)
            clock: Monotonic time source
            max_partitions: Tracked partitions before expired ones are pruned
        """
        if permit_limit < 1:
            raise ValueError("permit_limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.permit_limit = permit_limit
        self.window_seconds = window_seconds
        self.retry_after_seconds = (
            window_seconds if retry_after_seconds is None else retry_after_seconds
        )
        self.max_partitions = max_partitions
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    def acquire(self, key: str | None) -> RateLimitDecision:
        """
        Try to take a permit for ``key``.

        Returns:
            Decision with the number of permits left in the current window
        """
        key = key or UNKNOWN_PARTITION
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now - window.started_at >= self.window_seconds:
                if window is None and len(self._windows) >= self.max_partitions:
                    self._prune_locked(now)
                window = _Window(started_at=now)
                self._windows[key] = window

            if window.count < self.permit_limit:
                window.count += 1
                return RateLimitDecision(True, self.permit_limit - window.count)

        return RateLimitDecision(False, 0, self.retry_after_seconds)

    def admit(self, key: str | None) -> int:
        """
        Take a permit or raise.

        Returns:
            Permits left in the current window

        Raises:
            AdmissionDenied: When the partition has used up its window
        """
        decision = self.acquire(key)
        if not decision.allowed:
            log.warning("rate_limit.rejected", partition=key or UNKNOWN_PARTITION)
            raise AdmissionDenied(key or UNKNOWN_PARTITION, decision.retry_after)
        return decision.remaining

    def prune(self) -> int:
        """Drop partitions whose window has elapsed. Returns the number dropped."""
        with self._lock:
            return self._prune_locked(self._clock())

    def _prune_locked(self, now: float) -> int:
        expired = [
            k for k, w in self._windows.items() if now - w.started_at >= self.window_seconds
        ]
        for k in expired:
            del self._windows[k]
        if expired:
            log.debug("rate_limit.pruned", count=len(expired))
        return len(expired)

    def reset(self):
        """Forget all partitions (useful for testing)."""
        with self._lock:
            self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)
