"""Debounced timers for the builder session."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class Debouncer:
    """Run ``callback`` once ``delay`` seconds pass without another ``arm()``.

    ``arm()`` (re)starts the timer, ``cancel()`` drops it and ``fire()`` runs
    the callback immediately. Coroutine callbacks are scheduled as tasks on
    the running loop.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[], Any],
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.delay = delay
        self._callback = callback
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def arm(self) -> None:
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._on_timer)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def fire(self) -> Any:
        self.cancel()
        return self._run()

    async def wait(self) -> None:
        """Wait for callbacks already started by the timer to finish."""
        pending = [t for t in self._tasks if not t.done()]
        while pending:
            await asyncio.gather(*pending, return_exceptions=True)
            pending = [t for t in self._tasks if not t.done()]

    def _on_timer(self) -> None:
        self._handle = None
        self._run()

    def _run(self) -> Any:
        result = self._callback()
        if asyncio.iscoroutine(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            return task
        return result


class SaveScheduler:
    """Coalesce bursts of edits into single saves.

    Every ``schedule()`` re-arms the quiet-period timer. When the timer fires
    while a save is still running, no second save starts concurrently;
    instead one trailing save of the latest state runs after the current one
    completes. ``close()`` cancels a pending save outright, so edits made in
    the last quiet period are lost if the session ends first.
    """

    def __init__(self, save: Callable[[], Awaitable[Any]], delay: float):
        self._save = save
        self._debouncer = Debouncer(delay, self._flush)
        self._in_flight = False
        self._trailing = False
        self.save_count = 0
        self.last_error: Optional[BaseException] = None

    @property
    def delay(self) -> float:
        return self._debouncer.delay

    @property
    def pending(self) -> bool:
        return self._debouncer.pending

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def schedule(self) -> None:
        self._debouncer.arm()

    async def flush_now(self) -> None:
        self._debouncer.cancel()
        await self._flush()

    async def wait(self) -> None:
        await self._debouncer.wait()

    def close(self) -> None:
        if self._debouncer.pending:
            logger.info("Editing session closed with a pending save; unsaved changes dropped")
        self._debouncer.cancel()

    async def _flush(self) -> None:
        if self._in_flight:
            self._trailing = True
            return

        self._in_flight = True
        try:
            while True:
                self._trailing = False
                try:
                    await self._save()
                    self.save_count += 1
                    self.last_error = None
                except Exception as e:
                    self.last_error = e
                    logger.error(f"Auto-save failed: {e}", exc_info=True)
                if not self._trailing:
                    break
        finally:
            self._in_flight = False
