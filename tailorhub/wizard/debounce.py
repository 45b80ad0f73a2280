"""Debounced async callback with explicit flush.

    saver = Debouncer(autosave, interval=1.5)
    saver.schedule()      # every edit; restarts the quiet-period timer
    await saver.flush()   # run now (tests, or before a step that needs the result)

Runs never overlap: a flush requested while the callback is in flight waits
for it and then runs again if there were edits in between.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class Debouncer:
    def __init__(self, fn: Callable[[], Awaitable[bool]], interval: float):
        """
        fn: async callable returning True on success. A False return keeps the
            pending flag set so the next cycle tries again.
        """
        self._fn = fn
        self.interval = interval
        self._timer: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self._dirty = False
        self._closed = False
        self.runs = 0

    @property
    def pending(self) -> bool:
        return self._dirty

    @property
    def closed(self) -> bool:
        return self._closed

    def schedule(self) -> None:
        """Mark dirty and (re)start the timer. Needs a running event loop."""
        if self._closed:
            return
        self._dirty = True
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().create_task(self._fire_later())

    async def flush(self) -> None:
        self._cancel_timer()
        await self._run()

    def close(self) -> None:
        """Stop scheduling. A run already in flight completes on its own."""
        self._closed = True
        self._cancel_timer()

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None and not timer.done() and timer is not asyncio.current_task():
            timer.cancel()

    async def _fire_later(self) -> None:
        await asyncio.sleep(self.interval)
        self._timer = None
        await self._run()

    async def _run(self) -> None:
        async with self._lock:
            if not self._dirty:
                return
            self._dirty = False
            self.runs += 1
            if not await self._fn():
                self._dirty = True
