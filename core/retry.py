# server/core/retry.py
"""
Retry with exponential backoff for upstream calls
"""
import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from .exceptions import ExternalAPIError

logger = logging.getLogger(__name__)

T = TypeVar("T")

class RetryExecutor:
    """
    Runs an async callable up to ``attempts`` times.

    Only ``ExternalAPIError`` is retried, and only when it is retryable
    (network failure, timeout, 5xx or 429). Other 4xx responses and any
    other exception type fail immediately.
    """

    def __init__(
        self,
        attempts: int = 3,
        base_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.attempts = attempts
        self.base_delay = base_delay
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * (2 ** (attempt - 1))

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        attempt = 1
        while True:
            try:
                return await fn()
            except ExternalAPIError as e:
                if not e.retryable or attempt >= self.attempts:
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    f"Upstream request failed (attempt {attempt}/{self.attempts}): {e}. "
                    f"Retrying in {delay:.1f}s"
                )
                await self._sleep(delay)
                attempt += 1
