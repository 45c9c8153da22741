"""Background cache warming after a stock list fetch.

For every stock in a freshly fetched list, each registered data kind
(detail, price history, prediction series) is probed in the cache. Missing
or expired entries are refreshed by detached tasks. Their results and errors
are discarded: user-facing fetches carry their own stale fallback.

Tasks are kept in a supervised set so a shutdown path or a test can wait for
them (`drain`) or cancel them (`aclose`) deterministically.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Coroutine, Iterable, List, Optional, Sequence, Set

from stockcast.domain.events.fetch_events import DomainEvent, PrefetchLaunched
from stockcast.domain.interfaces.cache import CacheStore
from stockcast.domain.models.common import CacheKey, StockCode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PrefetchTarget:
    """One independently cached data kind of a stock."""
    kind: str
    key_for: Callable[[StockCode], CacheKey]
    refresh: Callable[[StockCode], Awaitable[Any]]


class PrefetchScheduler:
    """Fires non-blocking cache refreshes for stale or missing entries."""

    def __init__(
        self,
        cache_store: CacheStore,
        targets: Sequence[PrefetchTarget],
        event_listener: Optional[Callable[[DomainEvent], None]] = None,
    ):
        self.cache_store = cache_store
        self.targets = list(targets)
        self.event_listener = event_listener
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of supervised tasks not finished yet."""
        return len(self._tasks)

    def schedule(self, codes: Iterable[StockCode]) -> asyncio.Task:
        """Starts warming caches for `codes` and returns without waiting.

        Must be called from within the running event loop. Returns the
        supervising task, whose result is the number of refreshes launched.
        """
        return self._spawn(self._warm(list(codes)))

    async def _warm(self, codes: List[StockCode]) -> int:
        launched = 0
        seen: Set[StockCode] = set()
        for code in codes:
            # One refresh chain per (code, kind) per invocation
            if code in seen:
                continue
            seen.add(code)
            for target in self.targets:
                key = target.key_for(code)
                cached = await self.cache_store.get(key)
                if cached is not None and not cached.is_expired:
                    continue
                self._spawn(self._refresh(target, code))
                launched += 1
                event = PrefetchLaunched(code=code, kind=target.kind, key=key)
                logger.debug(f"EVENT: {event}")
                if self.event_listener is not None:
                    self.event_listener(event)
        logger.info(f"Prefetch launched {launched} refreshes for {len(seen)} stocks")
        return launched

    async def _refresh(self, target: PrefetchTarget, code: StockCode) -> None:
        try:
            await target.refresh(code)
        except Exception as e:
            # Fire-and-forget: never surfaces to the user
            logger.debug(f"Prefetch of {target.kind} for {code} failed: {type(e).__name__}: {e}")

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Waits until every scheduled task, including ones spawned meanwhile, is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancels every outstanding prefetch task."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.debug(f"PrefetchScheduler closed ({len(tasks)} tasks cancelled)")
