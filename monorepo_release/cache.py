"""In-memory cache for hosting API responses, with rate-limit tracking.

One ApiCache is created per release run and handed to the collaborators
that need it; nothing is shared between runs.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL = 300.0
RATE_LIMIT_MAX_WAIT = 60.0
RATE_LIMIT_LOW_WATER = 10


@dataclass
class _Entry:
    data: Any
    stored_at: float
    ttl: float


@dataclass(frozen=True)
class RateLimit:
    remaining: int
    reset: float
    limit: int


class ApiCache:
    """TTL cache keyed by string, plus the latest known rate limit."""

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._entries: dict[str, _Entry] = {}
        self._clock = clock
        self._sleep = sleep
        self.rate_limit: RateLimit | None = None

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, entry: _Entry) -> bool:
        return self._clock() - entry.stored_at > entry.ttl

    def get(self, key: str) -> Any | None:
        """Return cached data, or None on a miss or an expired entry."""
        entry = self._entries.get(key)
        if entry is None:
            logger.debug("Cache miss for key: %s", key)
            return None
        if self._expired(entry):
            logger.debug("Cache expired for key: %s", key)
            del self._entries[key]
            return None
        logger.debug("Cache hit for key: %s", key)
        return entry.data

    def set(self, key: str, data: Any, ttl: float = DEFAULT_TTL) -> None:
        self._entries[key] = _Entry(data=data, stored_at=self._clock(), ttl=ttl)

    async def get_or_fetch(
        self, key: str, fetcher: Callable[[], Awaitable[T]], ttl: float = DEFAULT_TTL
    ) -> T:
        """Return cached data for key, fetching and storing it on a miss."""
        cached = self.get(key)
        if cached is not None:
            return cached
        data = await fetcher()
        self.set(key, data, ttl)
        return data

    def clear(self) -> None:
        self._entries.clear()

    def cleanup(self) -> int:
        """Drop expired entries and return how many were removed."""
        expired = [key for key, entry in self._entries.items() if self._expired(entry)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Cleaned up %d expired cache entries", len(expired))
        return len(expired)

    def update_rate_limit(self, remaining: int, reset: float, limit: int) -> None:
        """Record rate-limit headers (reset is a Unix timestamp in seconds)."""
        self.rate_limit = RateLimit(remaining=remaining, reset=reset, limit=limit)
        logger.debug("Rate limit updated: %d/%d, resets at %s", remaining, limit, reset)

    def is_rate_limit_approaching(self) -> bool:
        if self.rate_limit is None:
            return False
        return self.rate_limit.remaining < RATE_LIMIT_LOW_WATER

    async def wait_for_rate_limit(self) -> None:
        """Sleep until the rate limit resets if it is nearly exhausted."""
        if self.rate_limit is None or self.rate_limit.remaining > 1:
            return
        wait = max(0.0, self.rate_limit.reset - self._clock())
        if wait > 0:
            logger.warning(
                "GitHub API rate limit nearly exhausted. Waiting %d seconds...",
                round(wait),
            )
            await self._sleep(min(wait, RATE_LIMIT_MAX_WAIT))
