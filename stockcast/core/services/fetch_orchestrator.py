"""Cache-aside fetch orchestration with stale fallback.

Composes the persistent cache store and the concurrency queue:

1. A fresh cache entry is returned immediately, unless a refresh is forced.
2. Otherwise the fetch goes through the concurrency queue.
3. A successful result is written back with a new expiry and returned.
4. A failed fetch falls back to any cached entry, fresh or stale. Only when
   no entry exists does the error reach the caller.

Concurrent network fetches for the same key share one in-flight operation.
"""

import enum
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from stockcast.domain.events.fetch_events import (
    CacheFreshHit,
    DomainEvent,
    FetchFailed,
    FetchQueued,
    FetchSucceeded,
    StaleFallbackServed,
)
from stockcast.domain.interfaces.cache import CacheStore
from stockcast.domain.models.common import CacheKey
from stockcast.infrastructure.resilience.concurrency_queue import ConcurrencyQueue
from stockcast.infrastructure.resilience.single_flight import SingleFlight

logger = logging.getLogger(__name__)

EventListener = Callable[[DomainEvent], None]


class FetchOutcome(enum.Enum):
    """How a fetch was satisfied. A failure without fallback raises instead."""
    CACHE_FRESH_HIT = "cache_fresh_hit"
    SUCCEEDED = "succeeded"
    FAILED_WITH_STALE_FALLBACK = "failed_with_stale_fallback"


@dataclass(frozen=True)
class FetchResult:
    """Per-call result; never persisted itself."""
    value: Any
    outcome: FetchOutcome
    stored_at: float

    @property
    def from_cache(self) -> bool:
        return self.outcome is not FetchOutcome.SUCCEEDED

    @property
    def is_stale(self) -> bool:
        return self.outcome is FetchOutcome.FAILED_WITH_STALE_FALLBACK


class CacheAsideFetcher:
    """Serves fresh cache, else fetches through the queue, else serves stale."""

    def __init__(
        self,
        cache_store: CacheStore,
        queue: ConcurrencyQueue,
        single_flight: Optional[SingleFlight] = None,
        dedupe_in_flight: bool = True,
        event_listener: Optional[EventListener] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initializes the orchestrator.

        Args:
            cache_store: Store consulted before and written after each fetch.
            queue: Queue every network fetch is submitted to.
            single_flight: Group used to share in-flight fetches per key.
            dedupe_in_flight: Disable to let concurrent misses fetch separately.
            event_listener: Optional callback receiving every fetch event.
            clock: Time source for result timestamps.
        """
        self.cache_store = cache_store
        self.queue = queue
        self.single_flight = single_flight or SingleFlight()
        self.dedupe_in_flight = dedupe_in_flight
        self.event_listener = event_listener
        self._clock = clock

    def _dispatch(self, event: DomainEvent) -> None:
        logger.debug(f"EVENT: {event}")
        if self.event_listener is not None:
            self.event_listener(event)

    async def fetch(
        self,
        key: CacheKey,
        operation: Callable[[], Awaitable[Any]],
        *,
        ttl: Optional[float] = None,
        force_refresh: bool = False,
        queued: bool = True,
    ) -> FetchResult:
        """Returns the value for `key` following the cache-aside policy.

        Args:
            key: Cache key of the resource.
            operation: Zero-argument coroutine function performing the fetch.
                Its result must be JSON serialisable.
            ttl: Expiry for the stored result (store default if None).
            force_refresh: Skip the fresh-cache shortcut.
            queued: Submit `operation` to the queue. Composite operations that
                queue their own sub-requests pass False so they never hold a
                slot while waiting for one.

        Raises:
            Exception: The fetch error, when no cache entry exists for `key`.
        """
        if not force_refresh:
            cached = await self.cache_store.get(key)
            if cached is not None and not cached.is_expired:
                self._dispatch(CacheFreshHit(key=key, stored_at=cached.stored_at))
                return FetchResult(cached.value, FetchOutcome.CACHE_FRESH_HIT, cached.stored_at)

        try:
            value = await self._fetch_and_store(key, operation, ttl, force_refresh, queued)
        except Exception as e:
            fallback = await self.cache_store.get(key)
            if fallback is None:
                logger.error(f"Fetch failed for key={key} with no cached fallback: {type(e).__name__}: {e}")
                self._dispatch(FetchFailed(key=key, error_type=type(e).__name__, error_message=str(e)))
                raise
            logger.warning(f"Fetch failed for key={key} ({type(e).__name__}: {e}); serving cached entry")
            self._dispatch(StaleFallbackServed(
                key=key,
                error_type=type(e).__name__,
                stored_at=fallback.stored_at,
                was_expired=fallback.is_expired,
            ))
            return FetchResult(fallback.value, FetchOutcome.FAILED_WITH_STALE_FALLBACK, fallback.stored_at)

        return FetchResult(value, FetchOutcome.SUCCEEDED, self._clock())

    async def _fetch_and_store(
        self,
        key: CacheKey,
        operation: Callable[[], Awaitable[Any]],
        ttl: Optional[float],
        force_refresh: bool,
        queued: bool,
    ) -> Any:
        async def round_trip() -> Any:
            start_time = time.perf_counter()
            value = await (self.queue.add(operation) if queued else operation())
            await self.cache_store.set(key, value, ttl)
            latency_ms = (time.perf_counter() - start_time) * 1000
            self._dispatch(FetchSucceeded(key=key, latency_ms=latency_ms))
            return value

        if not self.dedupe_in_flight:
            self._dispatch(FetchQueued(key=key, force_refresh=force_refresh))
            return await round_trip()

        joined = self.single_flight.in_flight(key)
        self._dispatch(FetchQueued(key=key, force_refresh=force_refresh, joined_in_flight=joined))
        return await self.single_flight.do(key, round_trip)
