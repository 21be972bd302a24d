"""Throttled, cached wrapper around one "find matches for a user" cycle.

- results are cached per (user_id, force_check) for `ttl_seconds`
- a fresh hit returns at once; an expired entry is still returned at once
  while a background task refreshes it
- a cycle that starts within `min_interval_seconds` of the previous cycle
  (any key) waits out the remainder of the interval
- a second call for a key whose cycle is still running is rejected
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Generic, TypeVar

from swapmatch.errors import OperationInProgressError
from swapmatch.logger import log

NowFn = Callable[[], datetime]
SleepFn = Callable[[float], Awaitable[None]]
CacheKey = tuple[str | None, bool]

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    value: T
    stored_at: datetime


class MatchFinder(Generic[T]):
    def __init__(
        self,
        search_fn: Callable[[str | None, bool, bool], Awaitable[T]],
        *,
        ttl_seconds: float,
        min_interval_seconds: float,
        now_fn: NowFn | None = None,
        sleep_fn: SleepFn | None = None,
    ) -> None:
        self.search_fn = search_fn
        self.ttl_seconds = ttl_seconds
        self.min_interval_seconds = min_interval_seconds
        self.now_fn = now_fn or (lambda: datetime.now(UTC))
        self.sleep_fn = sleep_fn or asyncio.sleep

        self._cache: dict[CacheKey, CacheEntry[T]] = {}
        self._in_flight: set[CacheKey] = set()
        self._last_started_at: datetime | None = None
        self._throttle_lock = asyncio.Lock()
        self.background_tasks: set[asyncio.Task] = set()

    async def get(
        self, user_id: str | None, force_check: bool = False, verbose: bool = False
    ) -> T:
        key: CacheKey = (user_id, force_check)

        entry = self._cache.get(key)
        if entry is not None:
            age = (self.now_fn() - entry.stored_at).total_seconds()
            if age < self.ttl_seconds:
                log.debug(f"Using cached matches for {key} (age {age:.1f}s)")
                return entry.value

            log.info(f"Cached matches for {key} are stale ({age:.1f}s), refreshing in background")
            self._schedule_refresh(key, verbose)
            return entry.value

        # claim before the first await so concurrent callers see it
        if key in self._in_flight:
            raise OperationInProgressError(
                f"A match search for user {user_id or 'admin'} is already in progress"
            )
        self._in_flight.add(key)
        return await self._cycle(key, verbose)

    def is_in_flight(self, user_id: str | None, force_check: bool = False) -> bool:
        return (user_id, force_check) in self._in_flight

    def invalidate(self, *user_ids: str) -> None:
        """Drop cached results for the given users (and admin views), or everything."""
        if not user_ids:
            self._cache.clear()
            return
        for key in list(self._cache):
            if key[0] is None or key[0] in user_ids:
                del self._cache[key]

    async def close(self) -> None:
        tasks = list(self.background_tasks)
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._cache.clear()

    async def _throttle(self) -> None:
        async with self._throttle_lock:
            if self._last_started_at is not None:
                elapsed = (self.now_fn() - self._last_started_at).total_seconds()
                remaining = self.min_interval_seconds - elapsed
                if remaining > 0:
                    log.info(f"Throttling match search for {remaining:.2f}s")
                    await self.sleep_fn(remaining)
            self._last_started_at = self.now_fn()

    async def _cycle(self, key: CacheKey, verbose: bool) -> T:
        user_id, force_check = key
        try:
            await self._throttle()
            value = await self.search_fn(user_id, force_check, verbose)
            self._cache[key] = CacheEntry(value=value, stored_at=self.now_fn())
            return value
        finally:
            self._in_flight.discard(key)

    def _schedule_refresh(self, key: CacheKey, verbose: bool) -> None:
        if key in self._in_flight:
            return
        self._in_flight.add(key)

        task = asyncio.create_task(self._background_refresh(key, verbose))
        self.background_tasks.add(task)

        def _cleanup(t: asyncio.Task) -> None:
            self.background_tasks.discard(t)
            # a task cancelled before it started never reached _cycle's finally
            if t.cancelled():
                self._in_flight.discard(key)

        task.add_done_callback(_cleanup)

    async def _background_refresh(self, key: CacheKey, verbose: bool) -> None:
        try:
            await self._cycle(key, verbose)
        except asyncio.CancelledError:
            return
        except Exception as e:
            log.warning(f"Background refresh for {key} failed: {e}")
