"""
Non-blocking dispatch of downstream notifier work.

Contract: best-effort, logged, never retried. A job is started as a detached
asyncio task and the caller returns immediately; a failing or slow job never
affects the response that scheduled it. This is the seam where a durable
queue would go if stronger delivery guarantees are needed.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Set

logger = logging.getLogger(__name__)


class BackgroundDispatcher:
    """Tracks detached jobs so they are not garbage-collected mid-flight"""

    def __init__(self, shutdown_timeout: float = 10.0):
        self._tasks: Set[asyncio.Task] = set()
        self._shutdown_timeout = shutdown_timeout

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, name: str, job: Callable[[], Awaitable[object]]) -> asyncio.Task:
        """Start ``job()`` in the background and return without awaiting it."""
        task = asyncio.create_task(self._run(name, job), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, name: str, job: Callable[[], Awaitable[object]]) -> None:
        try:
            await job()
            logger.debug("Background job '%s' finished", name)
        except Exception as e:
            logger.error(
                f"Background job '{name}' failed: {type(e).__name__}: {e}",
                extra={"component": "dispatch", "operation": name},
                exc_info=True,
            )

    async def drain(self) -> None:
        """Give in-flight jobs a bounded chance to finish on shutdown."""
        if not self._tasks:
            return
        logger.info("Waiting for %d background job(s)", len(self._tasks))
        done, pending = await asyncio.wait(set(self._tasks), timeout=self._shutdown_timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning("Cancelled %d background job(s) at shutdown", len(pending))
