"""Adaptive request pacing shared by the MCP tools."""

import asyncio
import time

from .api_client_core import _ClientLogger


class AdaptiveRateLimiter:
    """Space out requests, backing off when the backend answers 429.

    The rate (requests per second) halves on every rate-limit signal and
    creeps back up by 10% per success, bounded by ``min_rate``/``max_rate``.
    """

    def __init__(self, initial_rate: float = 10.0, min_rate: float = 1.0, max_rate: float = 100.0) -> None:
        if not 0 < min_rate <= initial_rate <= max_rate:
            raise ValueError("expected 0 < min_rate <= initial_rate <= max_rate")
        self.rate = initial_rate
        self.min_rate = min_rate
        self.max_rate = max_rate
        self._lock = asyncio.Lock()
        self._next_slot = 0.0
        self._blocked_until = 0.0
        self._logger = _ClientLogger("RATE_LIMITER")

    async def acquire(self) -> None:
        """Wait until the next request slot is free."""
        async with self._lock:
            now = time.monotonic()
            start = max(now, self._next_slot, self._blocked_until)
            self._next_slot = start + 1.0 / self.rate
            delay = start - now
        if delay > 0:
            await asyncio.sleep(delay)

    def on_success(self) -> None:
        self.rate = min(self.max_rate, self.rate * 1.1)

    def on_rate_limit(self, retry_after: float | None = None) -> None:
        self.rate = max(self.min_rate, self.rate / 2)
        if retry_after:
            self._blocked_until = time.monotonic() + retry_after
        self._logger.warning(f"Rate limited; pacing at {self.rate:.2f} req/s (retry_after={retry_after!r})")
