"""Outcome-driven retry loop for Riot API calls.

Each HTTP attempt is classified into an outcome (``Ok``, ``RetryAfter`` or
``Fail``). ``RetryDriver`` consumes outcomes according to a ``RetryPolicy``:
the policy owns attempt counts and the backoff curve, the driver owns the
loop and the interaction with the rate limiter.
"""

import asyncio
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, Union

import structlog

from .errors import FatalAPIError, NotFoundError, TransientAPIError
from .rate_limiter import RateLimiter

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class FailureKind(Enum):
    """Classification of a failed attempt."""

    TRANSIENT = "transient"
    NOT_FOUND = "not_found"
    FATAL = "fatal"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class RetryAfter:
    """The provider asked us to wait ``seconds`` before calling again."""

    seconds: float


@dataclass(frozen=True)
class Fail:
    kind: FailureKind
    message: str
    status_code: Optional[int] = None


Outcome = Union[Ok, RetryAfter, Fail]


@dataclass
class RetryPolicy:
    """Attempt limits and backoff curve.

    Attributes:
        max_rate_limit_retries: Provider 429 responses tolerated per call
        max_transient_attempts: Total attempts when failures are transient
        backoff_base_seconds: First backoff delay before jitter
        backoff_max_seconds: Upper bound of a single backoff delay
    """

    max_rate_limit_retries: int = 3
    max_transient_attempts: int = 3
    backoff_base_seconds: float = 0.5
    backoff_max_seconds: float = 8.0

    def backoff_delay(self, attempt: int, rng: Callable[[], float] = random.random) -> float:
        """Exponential backoff with equal jitter for the given 1-based attempt."""
        ceiling = min(self.backoff_max_seconds, self.backoff_base_seconds * (2 ** (attempt - 1)))
        return ceiling / 2 + (ceiling / 2) * rng()


class RetryDriver:
    """Runs one logical API call to completion under a RetryPolicy."""

    def __init__(
        self,
        limiter: RateLimiter,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ):
        self.limiter = limiter
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._rng = rng

    async def run(self, attempt: Callable[[], Awaitable[Outcome]], operation: str) -> Any:
        """Execute ``attempt`` until it yields ``Ok`` or the policy gives up.

        The limiter is acquired before every attempt, retries included.

        Raises:
            NotFoundError: The provider reported the resource missing
            FatalAPIError: Credentials or request are invalid
            TransientAPIError: Retries were exhausted
        """
        rate_limited = 0
        transient_attempts = 0

        while True:
            await self.limiter.acquire()
            outcome = await attempt()

            if isinstance(outcome, Ok):
                return outcome.value

            if isinstance(outcome, RetryAfter):
                rate_limited += 1
                self.limiter.apply_retry_after(outcome.seconds)
                if rate_limited > self.policy.max_rate_limit_retries:
                    logger.error(
                        "Rate limit retries exhausted",
                        operation=operation,
                        retries=rate_limited - 1,
                    )
                    raise TransientAPIError(
                        f"{operation}: still rate limited after {rate_limited - 1} retries",
                        status_code=429,
                    )
                logger.info(
                    "Provider rate limited call, retrying after floor",
                    operation=operation,
                    retry_after=outcome.seconds,
                    attempt=rate_limited,
                )
                continue

            if outcome.kind is FailureKind.NOT_FOUND:
                raise NotFoundError(f"{operation}: {outcome.message}", status_code=outcome.status_code)
            if outcome.kind is FailureKind.FATAL:
                raise FatalAPIError(f"{operation}: {outcome.message}", status_code=outcome.status_code)

            transient_attempts += 1
            if transient_attempts >= self.policy.max_transient_attempts:
                logger.error(
                    "Transient failure retries exhausted",
                    operation=operation,
                    attempts=transient_attempts,
                    error=outcome.message,
                )
                raise TransientAPIError(
                    f"{operation}: {outcome.message} (after {transient_attempts} attempts)",
                    status_code=outcome.status_code,
                )

            delay = self.policy.backoff_delay(transient_attempts, self._rng)
            logger.warning(
                "Transient failure, backing off",
                operation=operation,
                attempt=transient_attempts,
                delay=round(delay, 3),
                error=outcome.message,
            )
            await self._sleep(delay)
