"""
Simulated progress reporting.

Used where the underlying operation does not expose real progress events
(stream manifest negotiation, storage uploads). The value rises on an
interval towards a ceiling, can be bumped to real milestones, and snaps to
100 when the operation completes.
"""

import asyncio
import contextlib
import logging
import random
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ProgressSimulator:
    """
    Monotonic progress value driven by an asyncio task.

    The simulator is owned by exactly one operation. Every exit path of that
    operation must call `complete()`, `fail()` or `cancel()` so that no
    interval task outlives it.

    Usage:
        progress = ProgressSimulator(cap=90.0)
        progress.start()
        ...
        progress.milestone(75)
        ...
        progress.complete()
    """

    def __init__(
        self,
        interval: float = 0.5,
        step_max: float = 15.0,
        cap: float = 90.0,
        reset_grace: float = 1.0,
        on_change: Optional[Callable[[float], None]] = None,
        rng: Optional[random.Random] = None,
    ):
        if not 0 <= cap < 100:
            raise ValueError("cap must be in [0, 100)")
        self.interval = interval
        self.step_max = step_max
        self.cap = cap
        self.reset_grace = reset_grace
        self.on_change = on_change
        self._rng = rng or random.Random()
        self._value = 0.0
        self._tick_task: Optional[asyncio.Task] = None
        self._reset_task: Optional[asyncio.Task] = None

    @property
    def value(self) -> float:
        return self._value

    @property
    def running(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    def start(self) -> None:
        """Reset to 0 and start ticking. Requires a running event loop."""
        self.cancel()
        self._set(0.0)
        self._tick_task = asyncio.create_task(self._tick())

    def milestone(self, value: float) -> None:
        """Raise progress to a real milestone. Never lowers the value."""
        value = min(value, 100.0)
        if value > self._value:
            self._set(value)

    def complete(self) -> None:
        """Stop ticking, snap to 100 and reset to 0 after the grace delay."""
        self._stop_ticking()
        self._set(100.0)
        self._cancel_reset()
        self._reset_task = asyncio.create_task(self._reset_later())

    def fail(self) -> None:
        """Stop ticking and leave the value where it is."""
        self._stop_ticking()

    def cancel(self) -> None:
        """Stop all timers, including a pending reset."""
        self._stop_ticking()
        self._cancel_reset()

    async def wait_reset(self) -> None:
        """Wait for a pending post-completion reset, if any."""
        if self._reset_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._reset_task

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if self._value >= self.cap:
                continue
            step = self._rng.uniform(0, self.step_max)
            self._set(min(self.cap, self._value + step))

    async def _reset_later(self) -> None:
        await asyncio.sleep(self.reset_grace)
        self._set(0.0)

    def _stop_ticking(self) -> None:
        if self._tick_task is not None:
            self._tick_task.cancel()
            self._tick_task = None

    def _cancel_reset(self) -> None:
        if self._reset_task is not None:
            self._reset_task.cancel()
            self._reset_task = None

    def _set(self, value: float) -> None:
        self._value = value
        if self.on_change:
            try:
                self.on_change(value)
            except Exception as e:
                logger.error(f"Progress callback failed: {e}")
