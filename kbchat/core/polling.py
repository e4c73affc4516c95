"""Bounded, cancellable polling.

``await poll_until(...)`` sleeps with ``asyncio.sleep`` between attempts, so
cancelling the surrounding task stops the loop at the next await.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class PollingPolicy:
    """Attempt budget and spacing.  ``backoff_factor=1.0`` keeps the interval fixed."""

    max_attempts: int = 120
    interval_seconds: float = 2.0
    backoff_factor: float = 1.0
    max_interval_seconds: float = 10.0

    def delays(self):
        """Yield the sleep before each attempt after the first."""
        delay = self.interval_seconds
        for _ in range(max(self.max_attempts - 1, 0)):
            yield delay
            delay = min(delay * self.backoff_factor, max(self.max_interval_seconds, self.interval_seconds))


@dataclass
class PollResult(Generic[T]):
    done: bool
    attempts: int
    last: T | None


async def poll_until(
    check: Callable[[], Awaitable[T]],
    is_done: Callable[[T], bool],
    policy: PollingPolicy,
    label: str = "poll",
) -> PollResult[T]:
    """Call *check* until *is_done* accepts its result or the budget runs out.

    Exceptions raised by *check* propagate to the caller.
    """
    if policy.max_attempts <= 0:
        return PollResult(done=False, attempts=0, last=None)

    delays = policy.delays()
    last: T | None = None
    attempt = 0

    while True:
        attempt += 1
        last = await check()
        if is_done(last):
            logger.info("%s finished after %d attempt(s).", label, attempt)
            return PollResult(done=True, attempts=attempt, last=last)

        delay = next(delays, None)
        if delay is None:
            logger.info(
                "%s gave up after %d attempt(s).", label, attempt,
            )
            return PollResult(done=False, attempts=attempt, last=last)

        logger.debug(
            "%s attempt %d/%d not done; next check in %.1fs.",
            label, attempt, policy.max_attempts, delay,
        )
        await asyncio.sleep(delay)
