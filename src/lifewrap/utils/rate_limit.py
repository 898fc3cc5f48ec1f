"""Token-bucket rate limiting for calls into external engines."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Optional

from lifewrap.config.settings import RateLimitConfig, ServiceRateLimit


@dataclass(slots=True)
class RateLimiter:
    """Token bucket with exponential backoff for rate-limited operations."""

    requests_per_minute: int
    burst: int
    backoff_base_seconds: float = 0.5
    max_backoff_seconds: float = 5.0
    _tokens: float = field(init=False, repr=False)
    _last_refill: float = field(init=False, repr=False)
    _refill_rate: float = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._tokens = float(self.burst)
        self._last_refill = time.monotonic()
        self._refill_rate = self.requests_per_minute / 60.0 if self.requests_per_minute else 0.0

    async def acquire(self) -> None:
        """Wait until a token is available according to the configured rate limit."""

        if self.requests_per_minute <= 0:
            return

        attempt = 0
        while True:
            self._refill()
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return

            wait_time = (1.0 - self._tokens) / self._refill_rate if self._refill_rate else self.backoff_base_seconds
            backoff = min(self.max_backoff_seconds, self.backoff_base_seconds * (2**attempt))
            await asyncio.sleep(max(wait_time, backoff))
            attempt += 1

    def _refill(self) -> None:
        """Replenish available tokens based on elapsed time since the last refill."""

        now = time.monotonic()
        elapsed = now - self._last_refill
        if elapsed <= 0 or self._refill_rate == 0:
            return

        self._tokens = min(self.burst, self._tokens + elapsed * self._refill_rate)
        self._last_refill = now


def create_limiter(service_name: str, configuration: RateLimitConfig) -> Optional[RateLimiter]:
    """Build the limiter for ``service_name``, or ``None`` when the service is unthrottled."""

    config: Optional[ServiceRateLimit] = configuration.services.get(service_name)
    if config is None:
        return None
    requests_per_minute = config.requests_per_minute or 60
    burst = config.burst or requests_per_minute
    return RateLimiter(requests_per_minute=requests_per_minute, burst=burst)


__all__ = ["RateLimiter", "create_limiter"]
