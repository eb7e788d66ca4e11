"""Periodic tick that advances the active ritual timer.

The ticker watches the store's ``timer`` topic and keeps exactly one asyncio
task alive while the session is running and not paused. Any change to the
running/paused flags cancels or starts that task, and ``close()`` cancels it
for good, so no orphaned tick keeps adding seconds after a stop.
"""

from __future__ import annotations

import asyncio
import logging

from ritual.store import RitualStore

logger = logging.getLogger(__name__)

TICK_SECONDS = 1.0


class TimerTicker:
    def __init__(
        self,
        store: RitualStore,
        interval: float = TICK_SECONDS,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.store = store
        self.interval = interval
        self._loop = loop
        self._task: asyncio.Task | None = None
        self._closed = False
        store.subscribe(self._on_change)
        self.sync()

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._task.done()

    def _on_change(self, topic: str) -> None:
        if topic == "timer":
            self.sync()

    def sync(self) -> None:
        """Start or cancel the tick task to match the timer flags."""
        should_tick = not self._closed and self.store.timer_state.is_ticking
        if should_tick and not self.is_active:
            loop = self._loop or asyncio.get_running_loop()
            self._task = loop.create_task(self._run())
            logger.debug("Tick started for %s", self.store.timer_state.habit_id)
        elif not should_tick and self._task is not None:
            self._task.cancel()
            self._task = None
            logger.debug("Tick cancelled")

    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval)
                if not self.store.timer_state.is_ticking:
                    return
                self.store.tick()
        except Exception:
            logger.exception("Timer tick failed")

    def close(self) -> None:
        """Cancel the tick and stop listening. Safe to call twice."""
        self._closed = True
        self.store.unsubscribe(self._on_change)
        if self._task is not None:
            self._task.cancel()
            self._task = None
