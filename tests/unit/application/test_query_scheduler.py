"""Tests for keyed query re-issue and cancellation."""

from __future__ import annotations

import asyncio

import pytest

from aggregarr.application.use_cases.query_scheduler import QueryScheduler


def _sleeper(result: str, delay: float = 10.0):
    async def run() -> str:
        await asyncio.sleep(delay)
        return result

    return run


class TestQueryScheduler:
    async def test_same_inputs_reuse_task(self) -> None:
        scheduler = QueryScheduler()
        first = scheduler.submit("streams:tt1", ("a", "b"), _sleeper("x"))
        second = scheduler.submit("streams:tt1", ("a", "b"), _sleeper("y"))

        assert first is second
        assert len(scheduler) == 1
        await scheduler.aclose()

    async def test_changed_inputs_cancel_stale_task(self) -> None:
        scheduler = QueryScheduler()
        stale = scheduler.submit("streams:tt1", ("a",), _sleeper("old"))
        fresh = scheduler.submit("streams:tt1", ("a", "b"), _sleeper("new", 0))

        assert await fresh == "new"
        with pytest.raises(asyncio.CancelledError):
            await stale
        assert scheduler.get("streams:tt1") is fresh
        await scheduler.aclose()

    async def test_invalidate(self) -> None:
        scheduler = QueryScheduler()
        task = scheduler.submit("meta:tt1", (), _sleeper("x"))

        assert scheduler.invalidate("meta:tt1")
        assert not scheduler.invalidate("meta:tt1")
        assert scheduler.get("meta:tt1") is None
        with pytest.raises(asyncio.CancelledError):
            await task

    async def test_aclose_cancels_everything(self) -> None:
        scheduler = QueryScheduler()
        tasks = [scheduler.submit(f"k{i}", i, _sleeper("x")) for i in range(3)]

        await scheduler.aclose()

        assert all(t.cancelled() for t in tasks)
        assert len(scheduler) == 0
        with pytest.raises(RuntimeError):
            scheduler.submit("k", 0, _sleeper("x"))

    async def test_failed_task_forgotten(self) -> None:
        scheduler = QueryScheduler()

        async def fail() -> str:
            raise ValueError("boom")

        task = scheduler.submit("meta:tt1", (), fail)
        with pytest.raises(ValueError):
            await task
        await asyncio.sleep(0)

        assert scheduler.get("meta:tt1") is None
        assert len(scheduler) == 0

    async def test_finished_entries_bounded(self) -> None:
        scheduler = QueryScheduler(max_finished=2)
        tasks = [scheduler.submit(f"k{i}", i, _sleeper(str(i), 0)) for i in range(4)]

        await asyncio.gather(*tasks)
        await asyncio.sleep(0)

        assert len(scheduler) == 2
        assert scheduler.get("k0") is None
        assert scheduler.get("k3") is tasks[3]
        await scheduler.aclose()

    async def test_finished_result_reused(self) -> None:
        scheduler = QueryScheduler()
        first = scheduler.submit("meta:tt1", (), _sleeper("x", 0))
        assert await first == "x"

        assert scheduler.submit("meta:tt1", (), _sleeper("y", 0)) is first
        await scheduler.aclose()
