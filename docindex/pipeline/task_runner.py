"""In-process executor for detached per-document continuations.

The upload request returns as soon as the bytes and the record are
written; the rest of the work runs as an ``asyncio.Task`` owned by
:class:`BackgroundTaskRunner`.  The runner keeps a strong reference to
every in-flight task (the event loop only holds weak ones), logs tasks
that die with an unhandled exception, and lets callers wait for all
in-flight work with :meth:`drain`, which tests and graceful shutdown use.

There is no concurrency cap, no timeout and no durable ledger: a process
crash loses in-flight work.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from dataclasses import dataclass
from typing import Any

import structlog

from docindex.utils.logging import get_logger


@dataclass
class _RunnerStats:
    """Internal counters, never exposed to the API directly."""

    submitted: int = 0
    succeeded: int = 0
    failed: int = 0


class BackgroundTaskRunner:
    """Runs fire-and-forget coroutines keyed by an id."""

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[Any]] = {}
        self._stats = _RunnerStats()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def submit(self, key: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Schedule *coro* on the running loop without awaiting it.

        Parameters
        ----------
        key:
            Identifier for the work, normally the document id.  Used as
            the task name and for :meth:`is_running`.
        coro:
            The coroutine to run.
        """
        task = asyncio.create_task(coro, name=f"docindex:{key}")
        self._tasks[key] = task
        self._stats.submitted += 1
        task.add_done_callback(lambda t, k=key: self._on_done(k, t))
        self._logger.debug("background_task_submitted", key=key, in_flight=len(self._tasks))
        return task

    def is_running(self, key: str) -> bool:
        return key in self._tasks

    def in_flight(self) -> list[str]:
        return list(self._tasks)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait until every in-flight task, including ones submitted meanwhile, finishes."""
        while self._tasks:
            pending = list(self._tasks.values())
            done, not_done = await asyncio.wait(pending, timeout=timeout)
            if not_done:
                self._logger.warning("background_drain_timeout", pending=len(not_done))
                return

    async def cancel_all(self) -> None:
        """Cancel every in-flight task and wait for them to unwind."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def stats(self) -> dict[str, int]:
        return {
            "submitted": self._stats.submitted,
            "succeeded": self._stats.succeeded,
            "failed": self._stats.failed,
            "in_flight": len(self._tasks),
        }

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _on_done(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]
        if task.cancelled():
            self._logger.info("background_task_cancelled", key=key)
            return
        exc = task.exception()
        if exc is None:
            self._stats.succeeded += 1
            return
        self._stats.failed += 1
        self._logger.error(
            "background_task_failed",
            key=key,
            error=str(exc),
            exc_info=exc,
        )
