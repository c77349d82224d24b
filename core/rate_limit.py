# server/core/rate_limit.py
"""
Fixed-window rate limiting for upstream calls
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict

from .exceptions import RateLimitError

logger = logging.getLogger(__name__)

@dataclass
class RateWindow:
    count: int
    window_start: float
    limit: int
    window_seconds: float

class RateLimiter:
    """Process-wide limiter: at most ``limit`` upstream calls per window"""

    def __init__(
        self,
        limit: int = 60,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        enabled: bool = True
    ):
        if limit <= 0 or window_seconds <= 0:
            raise ValueError("Rate limit and window must be positive")
        self.enabled = enabled
        self._clock = clock
        self._window = RateWindow(count=0, window_start=clock(), limit=limit, window_seconds=window_seconds)
        self._lock = asyncio.Lock()

    async def check_and_consume(self) -> None:
        """Consume one call from the current window or raise RateLimitError"""
        if not self.enabled:
            return
        async with self._lock:
            now = self._clock()
            window = self._window
            elapsed = now - window.window_start

            if elapsed > window.window_seconds:
                window.count = 0
                window.window_start = now
                elapsed = 0.0

            if window.count >= window.limit:
                retry_after = max(window.window_seconds - elapsed, 0.001)
                logger.warning(f"Upstream rate limit reached ({window.limit}/{window.window_seconds:.0f}s), retry in {retry_after:.1f}s")
                raise RateLimitError(retry_after=retry_after)

            window.count += 1

    def stats(self) -> Dict[str, Any]:
        window = self._window
        return {
            "request_count": window.count,
            "limit": window.limit,
            "window_seconds": window.window_seconds,
            "window_age_seconds": round(self._clock() - window.window_start, 3)
        }
