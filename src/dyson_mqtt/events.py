"""Asyncio friendly event emitter used between the transport, managers and coordinator.

Listeners are invoked synchronously and in registration order, so an event is
fully processed by every synchronous listener before ``emit()`` returns. A
listener may instead return an awaitable, which is scheduled as a task owned
by the emitter; ``drain()`` waits for those tasks to finish.

Exceptions raised by listeners never propagate out of ``emit()``: they are
re-emitted as an ``error`` event on the same emitter, and logged if nothing is
listening for errors.
"""

from __future__ import annotations

import asyncio
import inspect
import traceback
from collections.abc import Awaitable, Callable
from typing import Any

from dyson_mqtt.logging_abstraction import get_logger
from dyson_mqtt.structs import MqttEvent

__all__ = ["AsyncEventEmitter", "Listener", "try_listener"]

logger = get_logger(__name__)

Listener = Callable[..., Any]


class AsyncEventEmitter:
    """Named event emitter with tracked asynchronous listeners."""

    def __init__(self, name: str) -> None:
        self.name: str = name
        self.lp: str = f"{name}:events:"
        self._listeners: dict[str, list[Listener]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    def on(self, event: str, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it again."""
        self._listeners.setdefault(event, []).append(listener)
        return lambda: self.off(event, listener)

    def off(self, event: str, listener: Listener) -> None:
        listeners = self._listeners.get(event)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def emit(self, event: str, *args: Any) -> bool:
        """Invoke every listener for ``event``; returns whether there were any."""
        listeners = list(self._listeners.get(event, ()))
        if not listeners:
            if event == MqttEvent.ERROR:
                self._log_unhandled(args[0] if args else None)
            return False

        for listener in listeners:
            try:
                result = listener(*args)
            except Exception as exc:
                self._listener_failed(event, exc)
                continue
            if inspect.isawaitable(result):
                self._track(event, result)
        return True

    async def wait_for(self, event: str) -> tuple[Any, ...]:
        """Suspend until ``event`` is next emitted and return its arguments."""
        future: asyncio.Future[tuple[Any, ...]] = asyncio.get_running_loop().create_future()

        def resolve(*args: Any) -> None:
            if not future.done():
                future.set_result(args)

        remove = self.on(event, resolve)
        try:
            return await future
        finally:
            remove()

    async def drain(self) -> None:
        """Wait for all asynchronous listener work scheduled so far (and any it schedules)."""
        while self._tasks:
            _ = await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _track(self, event: str, awaitable: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)

        def done(finished: asyncio.Task[Any]) -> None:
            self._tasks.discard(finished)
            if finished.cancelled():
                return
            exc = finished.exception()
            if isinstance(exc, Exception):
                self._listener_failed(event, exc)

        task.add_done_callback(done)

    def _listener_failed(self, event: str, exc: Exception) -> None:
        if event == MqttEvent.ERROR:
            # An error listener failed; do not recurse
            logger.error("%s '%s' listener raised %s: %s", self.lp, event, type(exc).__name__, exc)
            return
        _ = self.emit(MqttEvent.ERROR, exc)

    def _log_unhandled(self, exc: object) -> None:
        logger.error("%s Unhandled error: %s", self.lp, exc)
        if isinstance(exc, BaseException):
            logger.debug("%s %s", self.lp, "".join(traceback.format_exception(exc)).rstrip())


async def _guarded(owner: AsyncEventEmitter, awaitable: Awaitable[Any]) -> None:
    try:
        await awaitable
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        _ = owner.emit(MqttEvent.ERROR, exc)


def try_listener(owner: AsyncEventEmitter, op: Callable[..., Any]) -> Listener:
    """Wrap ``op`` so that any exception it raises is emitted as an error on ``owner``.

    Use this when subscribing to another component's events: failures belong to
    the subscriber, not to the emitter that delivered the event.
    """

    def listener(*args: Any) -> Awaitable[None] | None:
        try:
            result = op(*args)
        except Exception as exc:
            _ = owner.emit(MqttEvent.ERROR, exc)
            return None
        if inspect.isawaitable(result):
            return _guarded(owner, result)
        return None

    return listener
