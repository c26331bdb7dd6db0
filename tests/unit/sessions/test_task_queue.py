"""Tests for the single-worker FIFO queue."""

from __future__ import annotations

import asyncio

import pytest

from redline.sessions.task_queue import SerialTaskQueue


@pytest.mark.anyio
async def test_operations_run_one_at_a_time_in_order():
    queue = SerialTaskQueue()
    events: list[str] = []

    def op(name: str, delay: float):
        async def run() -> str:
            events.append(f"start:{name}")
            await asyncio.sleep(delay)
            events.append(f"end:{name}")
            return name

        return run

    results = await asyncio.gather(
        queue.run(op("a", 0.02)),
        queue.run(op("b", 0.0)),
        queue.run(op("c", 0.01)),
    )

    assert results == ["a", "b", "c"]
    assert events == ["start:a", "end:a", "start:b", "end:b", "start:c", "end:c"]
    assert queue.pending == 0
    assert not queue.busy


@pytest.mark.anyio
async def test_failure_propagates_to_submitter_only():
    queue = SerialTaskQueue()

    async def boom() -> None:
        raise RuntimeError("boom")

    async def fine() -> str:
        return "ok"

    first = asyncio.ensure_future(queue.run(boom))
    second = asyncio.ensure_future(queue.run(fine))

    with pytest.raises(RuntimeError):
        await first
    assert await second == "ok"


@pytest.mark.anyio
async def test_pending_counts_queued_operations():
    queue = SerialTaskQueue()
    release = asyncio.Event()

    async def blocker() -> None:
        await release.wait()

    tasks = [asyncio.ensure_future(queue.run(blocker)) for _ in range(3)]
    await asyncio.sleep(0)
    assert queue.pending == 3
    assert queue.busy

    release.set()
    await asyncio.gather(*tasks)
    assert queue.pending == 0
