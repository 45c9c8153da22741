"""Single-flight group: one in-flight operation per key.

Concurrent callers asking for the same key while an operation is running
join that operation and receive its result (or its exception) instead of
starting a duplicate upstream request.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Hashable

logger = logging.getLogger(__name__)


class SingleFlight:
    """Shares in-flight coroutines between callers using the same key."""

    def __init__(self):
        self._calls: Dict[Hashable, asyncio.Future] = {}

    def in_flight(self, key: Hashable) -> bool:
        return key in self._calls

    async def do(self, key: Hashable, fn: Callable[[], Awaitable[Any]]) -> Any:
        """Runs `fn` unless a call for `key` is already running, then joins it.

        The shared work is shielded: a caller being cancelled does not cancel
        it for the others.
        """
        shared = self._calls.get(key)
        if shared is None:
            shared = asyncio.ensure_future(fn())
            self._calls[key] = shared
            shared.add_done_callback(lambda _f, k=key: self._forget(k, _f))
        else:
            logger.debug(f"Joining in-flight call for key={key}")
        return await asyncio.shield(shared)

    def _forget(self, key: Hashable, future: asyncio.Future) -> None:
        if self._calls.get(key) is future:
            del self._calls[key]
        # Mark the exception retrieved; every joined caller re-raises it
        if not future.cancelled():
            future.exception()
