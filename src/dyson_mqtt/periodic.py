"""Periodic operation with an independent watchdog.

:class:`Periodic` repeatedly performs an operation at a fixed interval while a
separate watchdog declares the tracked subject ``DOWN`` unless :meth:`Periodic.up`
is called often enough. The two are decoupled: "are we still trying" is the
operation loop, "is the subject healthy" is the watchdog.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from dyson_mqtt.logging_abstraction import get_logger

__all__ = ["Periodic", "PeriodicConfig", "PeriodicStatus"]

logger = get_logger(__name__)


class PeriodicStatus(Enum):
    STOPPED = "stopped"
    DOWN = "down"
    UP = "up"


@dataclass(frozen=True)
class PeriodicConfig:
    """Configuration of a periodic operation.

    Attributes:
        name: Label used in log messages
        interval: Seconds between operations, measured from the last activity
        watchdog: Seconds without ``up()`` before the status becomes ``DOWN``
        on_operation: Operation to perform; may be a coroutine function
        on_status: Called once for every status transition

    """

    name: str
    interval: float
    watchdog: float
    on_operation: Callable[[], Awaitable[None] | None]
    on_status: Callable[[PeriodicStatus], None]


class Periodic:
    """Perform an operation periodically, with a watchdog on an external ``up()`` signal."""

    def __init__(self, config: PeriodicConfig) -> None:
        self.config: PeriodicConfig = config
        self.lp: str = f"periodic:{config.name}:"
        self.status: PeriodicStatus = PeriodicStatus.STOPPED
        self._enabled: bool = False
        self._last_activity: float | None = None
        self._wake: asyncio.Event | None = None
        self._loop_task: asyncio.Task[None] | None = None
        self._watchdog_task: asyncio.Task[None] | None = None

    def start(self) -> None:
        """Start the watchdog and the operation loop (the first operation runs immediately)."""
        if self._enabled:
            return
        self._enabled = True
        self._restart_watchdog()
        self._loop_task = asyncio.create_task(self._run(), name=f"{self.config.name} periodic")

    def up(self) -> None:
        """Record evidence that the subject is alive.

        Restarts the watchdog, reschedules the next operation for one interval
        from now (cutting short any pending wait) and sets the status to ``UP``.
        """
        if not self._enabled:
            return
        self._restart_watchdog()
        self._last_activity = asyncio.get_running_loop().time()
        if self._wake is not None:
            self._wake.set()
        self._set_status(PeriodicStatus.UP)

    async def stop(self) -> None:
        """Stop scheduling, wait for any in-progress operation, then cancel the watchdog."""
        self._enabled = False
        if self._wake is not None:
            self._wake.set()
        if self._loop_task is not None:
            await self._loop_task
            self._loop_task = None
        if self._watchdog_task is not None:
            _ = self._watchdog_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._watchdog_task
            self._watchdog_task = None
        self._set_status(PeriodicStatus.STOPPED)

    def _set_status(self, status: PeriodicStatus) -> None:
        if self.status is status:
            return
        logger.debug("%s %s -> %s", self.lp, self.status.name, status.name)
        self.status = status
        self.config.on_status(status)

    def _delay(self) -> float:
        if self._last_activity is None:
            return 0.0
        now = asyncio.get_running_loop().time()
        return max(0.0, self._last_activity + self.config.interval - now)

    async def _run(self) -> None:
        lp = f"{self.lp}run:"
        while self._enabled:
            # A fresh event per wait, so a stale wake-up never skips an interval
            self._wake = wake = asyncio.Event()
            try:
                _ = await asyncio.wait_for(wake.wait(), timeout=self._delay())
            except TimeoutError:
                pass
            else:
                # Rescheduled by up() or interrupted by stop()
                continue
            if not self._enabled:
                break

            try:
                result = self.config.on_operation()
                if result is not None:
                    await result
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("%s %s operation failed", lp, self.config.name)
            self._last_activity = asyncio.get_running_loop().time()

    def _restart_watchdog(self) -> None:
        if self._watchdog_task is not None:
            _ = self._watchdog_task.cancel()
        self._watchdog_task = asyncio.create_task(self._watchdog(), name=f"{self.config.name} watchdog")

    async def _watchdog(self) -> None:
        await asyncio.sleep(self.config.watchdog)
        logger.debug("%s Watchdog expired after %ss", self.lp, self.config.watchdog)
        self._set_status(PeriodicStatus.DOWN)
