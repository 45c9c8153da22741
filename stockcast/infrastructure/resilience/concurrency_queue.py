"""Bounded concurrency queue for outbound backend calls.

Admits at most `capacity` operations at a time and keeps the rest waiting in
strict FIFO order. Protects the backend from request bursts such as fetching
predictions for every stock in a list at once.
"""

import asyncio
import functools
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Optional, Set

from stockcast.domain.errors import DeadlineExceeded

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 3 # Conservative, keeps backend pressure low

Operation = Callable[[], Awaitable[Any]]


@dataclass
class QueuedTask:
    """A pending operation and the future its submitter is waiting on."""
    operation: Operation
    future: asyncio.Future
    timeout: Optional[float] = None
    released: bool = False


class ConcurrencyQueue:
    """FIFO queue running at most `capacity` operations concurrently.

    Counters are only touched from the event loop thread, so no locking is
    needed. A failing operation rejects only its own handle.
    """

    def __init__(self, capacity: int = DEFAULT_CONCURRENCY, default_timeout: Optional[float] = None):
        """Initializes the queue.

        Args:
            capacity: Maximum number of operations running at once.
            default_timeout: Deadline in seconds applied to operations added
                without their own. None means no deadline.
        """
        if not isinstance(capacity, int) or capacity < 1:
            raise ValueError(f"capacity must be a positive integer, got {capacity!r}")
        self.capacity = capacity
        self.default_timeout = default_timeout
        self._pending: Deque[QueuedTask] = deque()
        self._active_count = 0
        self._running: Set[asyncio.Task] = set()
        logger.info(f"ConcurrencyQueue initialized: capacity={capacity}, default_timeout={default_timeout}")

    @property
    def active_count(self) -> int:
        return self._active_count

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def add(self, operation: Operation, timeout: Optional[float] = None) -> Any:
        """Queues an operation and waits until it has run to completion.

        Args:
            operation: Zero-argument coroutine function; called exactly once.
            timeout: Deadline in seconds counted from admission. Overrides
                the queue default.

        Returns:
            Whatever the operation returns.

        Raises:
            DeadlineExceeded: The operation outlived its deadline and was
                cancelled.
            Exception: Whatever the operation raised.
        """
        loop = asyncio.get_running_loop()
        task = QueuedTask(
            operation=operation,
            future=loop.create_future(),
            timeout=timeout if timeout is not None else self.default_timeout,
        )
        self._pending.append(task)
        logger.debug(f"Task queued (pending={len(self._pending)}, active={self._active_count})")
        self._admit()
        return await task.future

    def _admit(self) -> None:
        """Starts pending tasks from the head while capacity is free."""
        while self._active_count < self.capacity and self._pending:
            task = self._pending.popleft()
            if task.future.done():
                # Submitter went away before admission
                continue
            self._active_count += 1
            runner = asyncio.ensure_future(self._run(task))
            self._running.add(runner)
            runner.add_done_callback(functools.partial(self._on_runner_done, task))

    async def _run(self, task: QueuedTask) -> None:
        try:
            if task.timeout is not None:
                try:
                    result = await asyncio.wait_for(task.operation(), timeout=task.timeout)
                except asyncio.TimeoutError as e:
                    raise DeadlineExceeded(task.timeout) from e
            else:
                result = await task.operation()
        except Exception as e:
            if not task.future.done():
                task.future.set_exception(e)
        else:
            if not task.future.done():
                task.future.set_result(result)
        finally:
            self._release(task)

    def _on_runner_done(self, task: QueuedTask, runner: asyncio.Task) -> None:
        self._running.discard(runner)
        # Covers runners cancelled before their first step
        self._release(task)

    def _release(self, task: QueuedTask) -> None:
        """Frees the slot of a settled task once and admits the next one."""
        if task.released:
            return
        task.released = True
        self._active_count -= 1
        if not task.future.done():
            # Runner was cancelled before it settled the handle
            task.future.cancel()
        self._admit()

    async def aclose(self) -> None:
        """Cancels running and pending operations (shutdown path)."""
        while self._pending:
            task = self._pending.popleft()
            if not task.future.done():
                task.future.cancel()
        running = list(self._running)
        for runner in running:
            runner.cancel()
        if running:
            await asyncio.gather(*running, return_exceptions=True)
        logger.debug(f"ConcurrencyQueue closed ({len(running)} running operations cancelled)")
