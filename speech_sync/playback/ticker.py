"""Cancellable periodic tick loop bound to a playback session.

WHY: The polled playback path has to sample the audio clock a few times
per second. A repeating timer that outlives its session would keep
publishing stale indices after stop(), even into the next session.

HOW: ProgressTicker runs an asyncio task that sleeps for the interval
and then calls the tick callback. Liveness is a SessionToken owned by
the session, checked before every tick, so a tick that was already
scheduled when the session died does nothing even if task cancellation
has not landed yet.

RULES:
- start() requires a running event loop
- stop() is idempotent and takes effect synchronously (no further ticks)
- A dead token makes every pending tick a no-op
- An exception raised by the tick callback is logged and stops the loop
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Optional

logger = logging.getLogger(__name__)


class SessionToken:
    """Liveness flag for one playback session.

    RULES:
    - Starts alive; invalidate() is permanent
    """

    def __init__(self) -> None:
        self._alive = True

    @property
    def alive(self) -> bool:
        return self._alive

    def invalidate(self) -> None:
        self._alive = False


class ProgressTicker:
    """Call ``on_tick`` every ``interval_s`` seconds while the token is alive."""

    def __init__(
        self,
        on_tick: Callable[[], None],
        interval_s: float,
        token: SessionToken,
    ) -> None:
        self._on_tick = on_tick
        self._interval_s = interval_s
        self._token = token
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start ticking; a second call while running is ignored."""
        if self._running or not self._token.alive:
            return
        self._running = True
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        """Stop ticking. Safe to call any number of times."""
        self._running = False
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval_s)
            if not (self._running and self._token.alive):
                return
            try:
                self._on_tick()
            except Exception:
                logger.exception("Progress tick failed; stopping tick loop")
                self._running = False
                return
