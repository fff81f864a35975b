"""Keyed query tasks that are re-issued when their inputs change.

A caller declares, per query key, the inputs the query depends on (the
installed sources, the preferred languages, the title id, ...). Submitting
the same key with equal inputs reuses the existing task; submitting it
with different inputs cancels the stale task and starts a new one.
Failed tasks are forgotten as soon as they finish, and only the most recent
successful results are kept.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from typing import Any

import structlog

log = structlog.get_logger(__name__)

QueryFactory = Callable[[], Awaitable[Any]]

_DEFAULT_MAX_FINISHED = 128


@dataclass
class _Entry:
    inputs: Hashable
    task: asyncio.Task[Any]


class QueryScheduler:
    """Owns every in-flight query task; ``aclose`` cancels them all."""

    def __init__(self, *, max_finished: int = _DEFAULT_MAX_FINISHED) -> None:
        self._entries: dict[str, _Entry] = {}
        self._max_finished = max_finished
        self._closed = False

    def __len__(self) -> int:
        return len(self._entries)

    def submit(
        self, key: str, inputs: Hashable, factory: QueryFactory
    ) -> asyncio.Task[Any]:
        """Return the task for ``key``, starting or restarting it as needed.

        Raises:
            RuntimeError: After ``aclose``.
        """
        if self._closed:
            raise RuntimeError("QueryScheduler is closed")

        entry = self._entries.get(key)
        if entry is not None:
            if entry.inputs == inputs and not entry.task.cancelled():
                return entry.task
            entry.task.cancel()
            log.debug("query_reissued", key=key)

        task = asyncio.create_task(factory(), name=f"query:{key}")
        # Re-insert so eviction order follows submission order.
        self._entries.pop(key, None)
        self._entries[key] = _Entry(inputs=inputs, task=task)
        task.add_done_callback(lambda t: self._on_done(key, t))
        return task

    def _on_done(self, key: str, task: asyncio.Task[Any]) -> None:
        entry = self._entries.get(key)
        if entry is None or entry.task is not task:
            return
        if task.cancelled() or task.exception() is not None:
            del self._entries[key]
            log.debug("query_failed_forgotten", key=key)
            return
        finished = [k for k, e in self._entries.items() if e.task.done()]
        for stale_key in finished[: max(0, len(finished) - self._max_finished)]:
            del self._entries[stale_key]

    def invalidate(self, key: str) -> bool:
        """Cancel and forget ``key``. The next submit starts fresh."""
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        entry.task.cancel()
        log.debug("query_invalidated", key=key)
        return True

    def get(self, key: str) -> asyncio.Task[Any] | None:
        entry = self._entries.get(key)
        return entry.task if entry else None

    async def aclose(self) -> None:
        self._closed = True
        tasks = [entry.task for entry in self._entries.values()]
        self._entries.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        log.debug("query_scheduler_closed", cancelled=len(tasks))
