"""Multi-window sliding rate limiter for the Riot API."""

import asyncio
import time
from collections import deque
from typing import Awaitable, Callable, Deque, Iterable, List, Optional

import structlog

from ...config import RateLimitTier
from ..observability import MetricsProvider

logger = structlog.get_logger(__name__)

# Lower bound for a single wait so float rounding cannot spin the loop
MIN_SLEEP_SECONDS = 0.001


class RateWindow:
    """Sliding window allowing at most ``max_calls`` per ``window_seconds``."""

    def __init__(self, max_calls: int, window_seconds: float):
        if max_calls <= 0 or window_seconds <= 0:
            raise ValueError("Rate window bounds must be positive")
        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self.call_timestamps: Deque[float] = deque(maxlen=max_calls)

    def purge(self, now: float) -> None:
        """Drop calls that left the window."""
        while self.call_timestamps and self.call_timestamps[0] + self.window_seconds <= now:
            self.call_timestamps.popleft()

    def wait_time(self, now: float) -> float:
        """Seconds until this window has headroom for one more call."""
        self.purge(now)
        if len(self.call_timestamps) < self.max_calls:
            return 0.0
        return self.call_timestamps[0] + self.window_seconds - now

    def record(self, now: float) -> None:
        self.call_timestamps.append(now)

    def count(self, now: float) -> int:
        self.purge(now)
        return len(self.call_timestamps)

    def __repr__(self) -> str:
        return f"<RateWindow({self.max_calls} calls / {self.window_seconds}s)>"


class RateLimiter:
    """Arbitrates calls sharing one API key across all configured windows.

    A call is admitted only when every window has headroom and the provider's
    last retry-after floor has elapsed. Admission decisions are serialized by
    an asyncio lock; waiters are served in arrival order, so every caller is
    eventually admitted as budget frees up.
    """

    def __init__(
        self,
        tiers: Iterable[RateLimitTier],
        name: str = "riot",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        metrics: Optional[MetricsProvider] = None,
    ):
        self.name = name
        self.windows: List[RateWindow] = [
            RateWindow(tier.max_calls, tier.window_seconds) for tier in tiers
        ]
        if not self.windows:
            raise ValueError("RateLimiter needs at least one window")
        self._clock = clock
        self._sleep = sleep
        self._metrics = metrics
        self._lock = asyncio.Lock()
        self._not_before = 0.0

    @property
    def not_before(self) -> float:
        """Clock time before which no call is admitted."""
        return self._not_before

    def apply_retry_after(self, seconds: float) -> None:
        """Honor a provider retry-after signal as a floor for the next admission."""
        floor = self._clock() + max(0.0, seconds)
        if floor > self._not_before:
            self._not_before = floor
            logger.warning(
                "Rate limit floor set by provider",
                limiter=self.name,
                retry_after=seconds,
            )

    def _wait_time(self, now: float) -> float:
        wait = self._not_before - now
        for window in self.windows:
            wait = max(wait, window.wait_time(now))
        return wait

    async def acquire(self) -> float:
        """Wait until a call may proceed and reserve one unit in every window.

        Returns:
            Seconds spent waiting for admission
        """
        started = self._clock()
        async with self._lock:
            while True:
                now = self._clock()
                wait = self._wait_time(now)
                if wait <= 0:
                    for window in self.windows:
                        window.record(now)
                    break
                logger.debug("Waiting for rate limit budget", limiter=self.name, wait_time=wait)
                await self._sleep(max(wait, MIN_SLEEP_SECONDS))

        waited = self._clock() - started
        if self._metrics:
            self._metrics.record_limiter_wait(self.name, waited)
        return waited

    def remaining(self) -> List[int]:
        """Remaining budget per window, in configuration order."""
        now = self._clock()
        return [window.max_calls - window.count(now) for window in self.windows]
