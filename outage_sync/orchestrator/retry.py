"""Linear-backoff retry for transient transport failures."""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Connection failures and timeouts. HTTP status errors are application
# outcomes and are never retried.
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (httpx.TransportError,)


class RetryPolicy:
    """Retry an async call up to `attempts` times in total.

    The wait before attempt n+1 is n * backoff_seconds.
    """

    def __init__(
        self,
        attempts: int = 3,
        backoff_seconds: float = 1.0,
        retry_on: tuple[type[BaseException], ...] = TRANSIENT_ERRORS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds
        self.retry_on = retry_on
        self.sleep = sleep

    async def call(self, operation: Callable[[], Awaitable[T]], description: str = "call") -> T:
        for attempt in range(1, self.attempts + 1):
            try:
                return await operation()
            except self.retry_on as exc:
                if attempt == self.attempts:
                    logger.warning(
                        "%s failed after %d attempts: %s", description, attempt, exc
                    )
                    raise
                delay = attempt * self.backoff_seconds
                logger.info(
                    "%s attempt %d/%d failed (%s), retrying in %.1fs",
                    description, attempt, self.attempts, exc, delay,
                )
                await self.sleep(delay)
        raise AssertionError("unreachable")
