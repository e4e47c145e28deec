"""Cancellable timers for polling and fabricated progress."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class CancellationToken:
    """One-shot cancellation flag shared by a job and the work it spawns."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


class RepeatingTask:
    """Runs a coroutine callback on a fixed cadence until it asks to stop or is stopped.

    Ticks are serialized: the next tick is scheduled only after the current
    callback returns. The callback returns True to end the loop. ``stop()`` is
    idempotent and may be called from inside the callback; once it returns,
    the callback's token is cancelled so an in-flight tick can tell that its
    result must not be applied.
    """

    def __init__(
        self,
        callback: Callable[[CancellationToken], Awaitable[bool | None]],
        interval: float,
        name: str = "repeating-task",
        initial_delay: float = 0.0,
    ) -> None:
        """Initialize the repeating task.

        Args:
            callback: Coroutine function receiving the task's cancellation token
            interval: Seconds between the end of one tick and the start of the next
            name: Name used for logging and the asyncio task
            initial_delay: Seconds to wait before the first tick
        """
        self.callback = callback
        self.interval = interval
        self.name = name
        self.initial_delay = initial_delay
        self.token = CancellationToken()
        self.ticks = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start ticking; a stopped task cannot be restarted."""
        if self._task is not None:
            logger.warning(f"{self.name} is already started")
            return
        self._task = asyncio.create_task(self._run(), name=self.name)

    def stop(self) -> None:
        """Stop ticking. Safe to call repeatedly and from within the callback."""
        self.token.cancel()
        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def wait(self) -> None:
        """Wait until the loop has ended."""
        if self._task is not None:
            try:
                await asyncio.shield(self._task)
            except asyncio.CancelledError:
                if not self._task.cancelled():
                    raise

    async def _run(self) -> None:
        try:
            if self.initial_delay > 0:
                await asyncio.sleep(self.initial_delay)
            while not self.token.cancelled:
                self.ticks += 1
                try:
                    finished = await self.callback(self.token)
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception(f"{self.name} tick {self.ticks} failed")
                    finished = False
                if finished or self.token.cancelled:
                    break
                await asyncio.sleep(self.interval)
        finally:
            self.token.cancel()


class ProgressRamp:
    """Client-fabricated progress estimate.

    Starts at 0 and adds ``step`` every ``interval`` seconds, never exceeding
    ``cap`` until ``finish()`` snaps it to 100. The value never decreases.
    """

    def __init__(
        self,
        step: int,
        interval: float,
        cap: int = 90,
        on_change: Callable[[int], Any] | None = None,
    ) -> None:
        self.step = step
        self.interval = interval
        self.cap = cap
        self.on_change = on_change
        self.value = 0
        self._ticker: RepeatingTask | None = None

    def start(self) -> None:
        self._ticker = RepeatingTask(self._advance, self.interval, name="progress-ramp", initial_delay=self.interval)
        self._ticker.start()

    async def _advance(self, token: CancellationToken) -> bool:
        if token.cancelled:
            return True
        self._set(min(self.value + self.step, self.cap))
        return self.value >= self.cap

    def stop(self) -> None:
        """Freeze the estimate where it is."""
        if self._ticker is not None:
            self._ticker.stop()

    def finish(self) -> None:
        """Stop and report completion."""
        self.stop()
        self._set(100)

    def _set(self, value: int) -> None:
        if value <= self.value:
            return
        self.value = value
        if self.on_change is not None:
            self.on_change(value)
