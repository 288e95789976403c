"""Post-response task runner for webhook processing."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Optional, Set

logger = logging.getLogger(__name__)


class EventTaskRunner:
    """
    Owns asyncio tasks scheduled after the webhook response is sent.
    - start()/stop() are driven by the application lifespan.
    - Exceptions from tasks are logged, never propagated to the caller.
    - stop() waits up to the grace period for in-flight tasks, then cancels the rest.
    """

    def __init__(self, grace_seconds: float = 10.0) -> None:
        self._grace_seconds = max(float(grace_seconds), 0.0)
        self._tasks: Set[asyncio.Task] = set()
        self._accepting = False

    @property
    def running(self) -> bool:
        return self._accepting

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def start(self) -> None:
        self._accepting = True

    def submit(self, coro: Awaitable[None], *, name: Optional[str] = None) -> asyncio.Task:
        if not self._accepting:
            # Close the coroutine so it does not warn about never being awaited.
            close = getattr(coro, "close", None)
            if close is not None:
                close()
            raise RuntimeError("EventTaskRunner is not running")
        task = asyncio.ensure_future(coro)
        if name:
            task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Webhook task %s was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Webhook task %s failed", task.get_name(), exc_info=exc)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for every in-flight task (bounded by `timeout` when given)."""
        if not self._tasks:
            return
        await asyncio.wait(set(self._tasks), timeout=timeout)

    async def stop(self) -> None:
        self._accepting = False
        if not self._tasks:
            return
        logger.info("Waiting up to %.1fs for %d webhook task(s)", self._grace_seconds, len(self._tasks))
        await self.drain(timeout=self._grace_seconds)
        leftover = list(self._tasks)
        for task in leftover:
            task.cancel()
        if leftover:
            await asyncio.gather(*leftover, return_exceptions=True)
