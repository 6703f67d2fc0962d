"""Self-rescheduling cooperative loops."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from shepherd.logging import bind_context, get_logger

__all__ = ["RepeatingTask"]

logger = get_logger(__name__)


class RepeatingTask:
    """Run an async action repeatedly with a delay computed after each run.

    The next delay is asked for only after the current run has finished, so
    runs never overlap. :meth:`stop` sets a stop event: a pending delay ends at
    once, and a run in progress is allowed to finish but is not followed by
    another one.

    Exceptions raised by the action are logged and do not end the loop.

    Example:
        ```python
        loop = RepeatingTask("queue", engine.process_queue, lambda: 15.0)
        loop.start()
        ...
        await loop.stop()
        ```
    """

    def __init__(
        self,
        name: str,
        action: Callable[[], Awaitable[object]],
        interval: Callable[[], float],
        *,
        run_immediately: bool = True,
    ) -> None:
        """Initialize the loop.

        Args:
            name: Name used for the asyncio task and in logs.
            action: Coroutine function run on each iteration.
            interval: Returns the delay in seconds before the next run.
            run_immediately: Run once right after start instead of waiting
                for the first interval.
        """
        self.name = name
        self._action = action
        self._interval = interval
        self._run_immediately = run_immediately
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self.iterations = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the loop on the running event loop. No-op if running."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run(), name=self.name)
        logger.debug("loop_started", loop=self.name)

    async def stop(self) -> None:
        """Stop scheduling runs and wait for a run in progress to finish."""
        self._stop_event.set()
        task, self._task = self._task, None
        if task is not None:
            await task
            logger.debug("loop_stopped", loop=self.name, iterations=self.iterations)

    async def _run(self) -> None:
        # Runs in its own asyncio task, so the binding stays local to this loop
        bind_context(loop=self.name)
        if not self._run_immediately and await self._wait_or_stop():
            return
        while not self._stop_event.is_set():
            try:
                await self._action()
            except Exception:
                logger.exception("loop_iteration_failed", loop=self.name)
            self.iterations += 1
            if await self._wait_or_stop():
                return

    async def _wait_or_stop(self) -> bool:
        """Sleep for the next interval. Returns True if stop was requested."""
        if self._stop_event.is_set():
            return True
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval())
        except TimeoutError:
            return False
        return True
