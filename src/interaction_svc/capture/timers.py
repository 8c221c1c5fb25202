"""Timer state machines for the capture pipeline."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable


logger = logging.getLogger(__name__)

TimerCallback = Callable[[], "Awaitable[None] | None"]


class TimerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"       # RepeatingTimer loop active
    SCHEDULED = "scheduled"   # DebounceTimer waiting to fire


async def _invoke(callback: TimerCallback, name: str) -> None:
    try:
        result = callback()
        if inspect.isawaitable(result):
            await result
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.error(f"Timer {name!r} callback error: {e}")


@dataclass
class RepeatingTimer:
    """
    Calls `callback` every `interval_seconds` until stopped.

    start() and stop() are idempotent. A callback error is logged and the
    timer keeps running.
    """
    interval_seconds: float
    callback: TimerCallback
    name: str = "timer"

    _task: asyncio.Task | None = field(default=None, init=False)
    _ticks: int = field(default=0, init=False)

    @property
    def state(self) -> TimerState:
        if self._task is not None and not self._task.done():
            return TimerState.RUNNING
        return TimerState.IDLE

    @property
    def ticks(self) -> int:
        return self._ticks

    def start(self) -> bool:
        """Start the loop on the running event loop. Returns False if already running."""
        if self.state == TimerState.RUNNING:
            return False
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.debug(f"Timer {self.name!r} started (interval={self.interval_seconds}s)")
        return True

    def stop(self) -> bool:
        """Cancel the loop. Returns False if it was not running."""
        if self.state != TimerState.RUNNING:
            self._task = None
            return False
        self._task.cancel()
        self._task = None
        logger.debug(f"Timer {self.name!r} stopped after {self._ticks} ticks")
        return True

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            self._ticks += 1
            await _invoke(self.callback, self.name)


@dataclass
class DebounceTimer:
    """
    Fires `callback` once, `delay_seconds` after the last trigger().

    Every trigger cancels the pending call and reschedules it.
    """
    delay_seconds: float
    callback: TimerCallback
    name: str = "debounce"

    _handle: asyncio.TimerHandle | None = field(default=None, init=False)
    _fired: int = field(default=0, init=False)
    _tasks: set[asyncio.Task] = field(default_factory=set, init=False)

    @property
    def state(self) -> TimerState:
        return TimerState.SCHEDULED if self._handle is not None else TimerState.IDLE

    @property
    def fired(self) -> int:
        return self._fired

    def trigger(self) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay_seconds, self._fire)

    def cancel(self) -> bool:
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True

    def _fire(self) -> None:
        self._handle = None
        self._fired += 1
        result = None
        try:
            result = self.callback()
        except Exception as e:
            logger.error(f"Timer {self.name!r} callback error: {e}")
        if inspect.isawaitable(result):
            # Errors are logged by _invoke; hold the task until it finishes
            task = asyncio.get_running_loop().create_task(_invoke(lambda: result, self.name))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
