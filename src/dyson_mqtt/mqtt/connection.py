"""Keep the MQTT transport connected and surface its session lifecycle.

A lost session is re-established after a short backoff: the first attempt
follows ``reconnect_delay`` after the close, doubling on each failure up to
``reconnect_interval``, and the delay resets once a session has stayed up for
a while. A :class:`~dyson_mqtt.periodic.Periodic` makes the initial attempt,
retries at ``reconnect_interval`` as a fallback, and runs the watchdog that
logs when the broker link has been quiet for too long. Every transport
connect or received message counts as activity.
"""

from __future__ import annotations

import asyncio
import contextlib

from dyson_mqtt import metrics
from dyson_mqtt.config import MqttSettings
from dyson_mqtt.const import SHORT_SESSION_SECONDS
from dyson_mqtt.events import AsyncEventEmitter, try_listener
from dyson_mqtt.logging_abstraction import get_logger
from dyson_mqtt.periodic import Periodic, PeriodicConfig, PeriodicStatus
from dyson_mqtt.structs import MqttEvent
from dyson_mqtt.transport import MqttTransport
from dyson_mqtt.utils import format_seconds

__all__ = ["ConnectionManager"]

logger = get_logger(__name__)


class ConnectionManager:
    """Own a transport's lifecycle; re-emits ``connect``, ``close`` and ``error``."""

    lp: str = "mqtt:connection:"

    def __init__(self, transport: MqttTransport, settings: MqttSettings, serial_number: str = "") -> None:
        self.transport: MqttTransport = transport
        self.settings: MqttSettings = settings
        self.serial_number: str = serial_number or transport.name
        self.events: AsyncEventEmitter = AsyncEventEmitter(f"{self.serial_number}:connection")
        self.connected: bool = False
        self.reconnect_task: asyncio.Task[None] | None = None
        self._backoff: float = settings.reconnect_delay
        self._uptime_start: float | None = None
        self._started: bool = False
        self._stopped: bool = False
        self.periodic: Periodic = Periodic(
            PeriodicConfig(
                name=f"{self.serial_number} MQTT connection",
                interval=settings.reconnect_interval,
                watchdog=settings.connection_watchdog,
                on_operation=self._ensure_connected,
                on_status=self._on_link_status,
            )
        )

        _ = transport.events.on(MqttEvent.CONNECT, try_listener(self.events, self._on_connect))
        _ = transport.events.on(MqttEvent.CLOSE, try_listener(self.events, self._on_close))
        _ = transport.events.on(MqttEvent.MESSAGE, try_listener(self.events, self._on_message))
        _ = transport.events.on(MqttEvent.ERROR, try_listener(self.events, self._on_error))

    def start(self) -> None:
        """Begin connecting; the first attempt is made immediately."""
        if self._stopped:
            return
        logger.info("%s Starting MQTT client...", self.lp)
        self._started = True
        self.periodic.start()

    async def stop(self) -> None:
        """Disconnect the transport, returning once teardown is complete (idempotent)."""
        lp = f"{self.lp}stop:"
        if self._stopped:
            return
        self._stopped = True
        logger.info("%s Stopping MQTT client...", lp)
        await self._cancel_reconnect()
        await self.periodic.stop()
        await self.transport.end()
        await self.transport.events.drain()
        await self.events.drain()
        logger.info("%s MQTT client stopped", lp)

    async def _ensure_connected(self) -> None:
        if self._stopped or self.connected:
            return
        logger.info("%s MQTT client attempting connection...", self.lp)
        await self.transport.connect()

    def _schedule_reconnect(self) -> None:
        task = self.reconnect_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            logger.debug("%s Reconnection already scheduled", self.lp)
            return
        delay = self._backoff
        self._backoff = min(self._backoff * 2, max(self.settings.reconnect_interval, self.settings.reconnect_delay))
        logger.debug("%s Reconnecting in %s", self.lp, format_seconds(delay))
        self.reconnect_task = asyncio.create_task(
            self._reconnect(delay),
            name=f"{self.serial_number} MQTT reconnect",
        )

    async def _reconnect(self, delay: float) -> None:
        await asyncio.sleep(delay)
        try:
            await self._ensure_connected()
        except Exception:
            logger.exception("%s MQTT reconnection attempt failed", self.lp)
            if not self._stopped and not self.connected:
                # An attempt that raised rather than closed still needs a retry
                self._schedule_reconnect()

    async def _cancel_reconnect(self) -> None:
        task, self.reconnect_task = self.reconnect_task, None
        if task is not None and task is not asyncio.current_task():
            _ = task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _on_connect(self) -> None:
        lp = f"{self.lp}connect:"
        logger.info("%s MQTT client connected to broker", lp)
        if self._uptime_start is not None:
            logger.warning("%s Unexpected MQTT 'connect' event", lp)
        self._uptime_start = asyncio.get_running_loop().time()
        self.connected = True
        metrics.record_transport_event(self.serial_number, MqttEvent.CONNECT)
        self.periodic.up()
        _ = self.events.emit(MqttEvent.CONNECT)

    def _on_close(self) -> None:
        lp = f"{self.lp}close:"
        self.connected = False
        metrics.record_transport_event(self.serial_number, MqttEvent.CLOSE)
        if self._stopped:
            logger.info("%s MQTT client connection closed; not reconnecting", lp)
        elif self._uptime_start is not None:
            uptime = asyncio.get_running_loop().time() - self._uptime_start
            description = f"MQTT client closed stream after {format_seconds(uptime)}"
            if uptime < SHORT_SESSION_SECONDS:
                logger.warning("%s %s", lp, description)
            else:
                logger.info("%s %s", lp, description)
                self._backoff = self.settings.reconnect_delay
        else:
            logger.info("%s MQTT client closed stream after failed connection attempt", lp)
        self._uptime_start = None
        if self._started and not self._stopped:
            self._schedule_reconnect()
        _ = self.events.emit(MqttEvent.CLOSE)

    def _on_message(self, _topic: str, _payload: bytes) -> None:
        self.periodic.up()

    def _on_error(self, exc: Exception) -> None:
        logger.error("%s MQTT client connection error: %s", self.lp, exc)
        _ = self.events.emit(MqttEvent.ERROR, exc)

    def _on_link_status(self, status: PeriodicStatus) -> None:
        if status is PeriodicStatus.DOWN:
            logger.warning(
                "%s No MQTT activity for %s",
                self.lp,
                format_seconds(self.settings.connection_watchdog),
            )
        elif status is PeriodicStatus.UP:
            logger.debug("%s MQTT link active", self.lp)
