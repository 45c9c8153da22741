import asyncio

import pytest

from stockcast.domain.errors import DeadlineExceeded, NetworkFailure
from stockcast.infrastructure.resilience.concurrency_queue import ConcurrencyQueue


@pytest.mark.parametrize("capacity", [0, -1, 1.5, "3"])
def test_invalid_capacity_is_rejected(capacity):
    with pytest.raises(ValueError):
        ConcurrencyQueue(capacity=capacity)

@pytest.mark.asyncio
async def test_never_runs_more_than_capacity():
    queue = ConcurrencyQueue(capacity=2)
    running = 0
    peak = 0

    async def operation():
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.01)
        running -= 1
        return "done"

    results = await asyncio.gather(*(queue.add(operation) for _ in range(7)))

    assert results == ["done"] * 7
    assert peak == 2
    assert queue.active_count == 0
    assert queue.pending_count == 0

@pytest.mark.asyncio
async def test_admits_in_submission_order():
    queue = ConcurrencyQueue(capacity=1)
    started = []

    def make(i):
        async def operation():
            started.append(i)
            await asyncio.sleep(0)
            return i
        return operation

    results = await asyncio.gather(*(queue.add(make(i)) for i in range(5)))

    assert started == [0, 1, 2, 3, 4]
    assert results == [0, 1, 2, 3, 4]

@pytest.mark.asyncio
async def test_failure_rejects_only_its_own_handle():
    queue = ConcurrencyQueue(capacity=1)

    async def ok():
        return "ok"

    async def boom():
        raise NetworkFailure("API Error: 500", status_code=500)

    results = await asyncio.gather(
        queue.add(ok), queue.add(boom), queue.add(ok), return_exceptions=True
    )

    assert results[0] == "ok"
    assert isinstance(results[1], NetworkFailure)
    assert results[2] == "ok"
    assert queue.active_count == 0

@pytest.mark.asyncio
async def test_operation_runs_exactly_once():
    queue = ConcurrencyQueue(capacity=3)
    calls = 0

    async def operation():
        nonlocal calls
        calls += 1
        return calls

    assert await queue.add(operation) == 1
    assert calls == 1

@pytest.mark.asyncio
async def test_deadline_rejects_and_frees_the_slot():
    queue = ConcurrencyQueue(capacity=1)

    async def slow():
        await asyncio.sleep(10)

    async def quick():
        return "quick"

    with pytest.raises(DeadlineExceeded) as exc_info:
        await queue.add(slow, timeout=0.01)

    assert isinstance(exc_info.value, NetworkFailure)
    assert queue.active_count == 0
    assert await queue.add(quick) == "quick"

@pytest.mark.asyncio
async def test_default_timeout_applies_to_every_operation():
    queue = ConcurrencyQueue(capacity=2, default_timeout=0.01)

    async def slow():
        await asyncio.sleep(10)

    with pytest.raises(DeadlineExceeded):
        await queue.add(slow)

@pytest.mark.asyncio
async def test_aclose_cancels_pending_and_running():
    queue = ConcurrencyQueue(capacity=1)
    gate = asyncio.Event()

    async def blocked():
        await gate.wait()

    first = asyncio.ensure_future(queue.add(blocked))
    second = asyncio.ensure_future(queue.add(blocked))
    await asyncio.sleep(0)
    assert queue.active_count == 1
    assert queue.pending_count == 1

    await queue.aclose()
    results = await asyncio.gather(first, second, return_exceptions=True)

    assert all(isinstance(r, asyncio.CancelledError) for r in results)
    assert queue.pending_count == 0
