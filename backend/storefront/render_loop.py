"""Countdown render loop: one ticking display per widget."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from countdown.engine.countdown import CountdownParts, decompose, format_countdown, remaining_ms
from countdown.engine.session_clock import now_ms

logger = logging.getLogger(__name__)


def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class CountdownRenderLoop:
    """Render the remaining time to ``end_ms`` once per ``interval`` seconds.

    Ticks are scheduled against absolute loop deadlines so a slow render
    does not push later ticks back.  When the countdown reaches zero the loop
    stops itself and calls ``on_expire`` once.
    """

    def __init__(
        self,
        end_ms: int,
        on_render: Callable[[str], None],
        on_expire: Callable[[], None] | None = None,
        *,
        clock: Callable[[], int] = now_ms,
        interval: float = 1.0,
    ) -> None:
        self.end_ms = end_ms
        self.on_render = on_render
        self.on_expire = on_expire
        self.clock = clock
        self.interval = interval
        self._task: asyncio.Task | None = None
        self._running = False
        self._expired = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def expired(self) -> bool:
        return self._expired

    def tick(self) -> CountdownParts:
        """Render once; fire expiry on the first tick that reaches zero."""
        parts = decompose(remaining_ms(self.end_ms, self.clock()))
        self.on_render(format_countdown(parts))
        if parts.expired and not self._expired:
            self._expired = True
            self.stop()
            if self.on_expire is not None:
                self.on_expire()
        return parts

    def start(self) -> None:
        """Render immediately, then keep ticking.  Must be called inside a running loop."""
        if self._running:
            return
        self._running = True
        self._expired = False
        parts = self.tick()
        if parts.expired:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time()
        while self._running:
            deadline += self.interval
            await asyncio.sleep(max(0.0, deadline - loop.time()))
            if not self._running:
                break
            try:
                self.tick()
            except Exception as e:
                logger.exception(f"Countdown render failed: {e}")
                self.stop()

    def stop(self) -> None:
        """Halt ticking.  Safe to call repeatedly."""
        self._running = False
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

    def restart(self, end_ms: int) -> None:
        self.stop()
        self.end_ms = end_ms
        self.start()
