"""Transport that replays a captured MQTT log file instead of talking to a broker.

Log file format: one JSON payload per line. ``#`` starts a comment (unless it
appears inside a JSON object), blank lines are ignored, and a line containing
only ``---`` pauses playback to emulate the device's initialisation delay.
"""

from __future__ import annotations

import asyncio
import contextlib
import re
from collections.abc import Sequence
from pathlib import Path
from typing_extensions import override

from dyson_mqtt.config import ReplayDeviceConfig
from dyson_mqtt.const import MQTT_QOS_AT_LEAST_ONCE
from dyson_mqtt.exceptions import MqttTransportError
from dyson_mqtt.logging_abstraction import get_logger
from dyson_mqtt.structs import MqttEvent
from dyson_mqtt.transport.base import MqttTransport, SubscriptionGrant
from dyson_mqtt.utils import plural

__all__ = ["ReplayMqttTransport", "read_replay_log"]

logger = get_logger(__name__)

COMMENT_RE = re.compile(r"^#.*|#[^{}]*$")
INITIALISE_MARKER = "---"

# Playback timings (seconds)
INITIALISE_INTERVAL = 35.0
MESSAGE_INTERVAL = 0.1


def read_replay_log(filename: Path) -> list[str]:
    """Read a replay log, stripping comments and blank lines."""
    text = filename.read_text(encoding="utf-8")
    lines = (COMMENT_RE.sub("", line).strip() for line in text.splitlines())
    return [line for line in lines if line]


class ReplayMqttTransport(MqttTransport):
    """Emit the payloads of a log file as if they arrived on the device status topic.

    All subscriptions are granted; the first subscribed topic containing
    ``status`` becomes the topic for every replayed message. Publishes are
    logged and otherwise ignored.
    """

    lp: str = "transport:replay:"
    cloud: bool = False

    def __init__(
        self,
        device: ReplayDeviceConfig,
        initialise_interval: float = INITIALISE_INTERVAL,
        message_interval: float = MESSAGE_INTERVAL,
    ) -> None:
        super().__init__(device.name)
        self.device: ReplayDeviceConfig = device
        self.initialise_interval: float = initialise_interval
        self.message_interval: float = message_interval
        self.topic: str | None = None
        self._topic_known: asyncio.Event = asyncio.Event()
        self._playback_task: asyncio.Task[None] | None = None

    @override
    async def connect(self) -> None:
        lp = f"{self.lp}connect:"
        if self._playback_task is not None and not self._playback_task.done():
            return
        try:
            lines = await asyncio.to_thread(read_replay_log, self.device.filename)
        except OSError as exc:
            raise MqttTransportError(f"cannot read {self.device.filename}: {exc}", "connect") from exc
        logger.debug("%s MQTT log file contains %s", lp, plural(len(lines), "message"))

        self.connected = True
        _ = self.events.emit(MqttEvent.CONNECT)
        self._playback_task = asyncio.create_task(self._playback(lines), name=f"{self.name} replay")

    async def _playback(self, lines: list[str]) -> None:
        lp = f"{self.lp}playback:"
        _ = await self._topic_known.wait()
        topic = self.topic
        if topic is None:
            logger.error("%s No status topic to replay on", lp)
            _ = self.events.emit(MqttEvent.ERROR, MqttTransportError("no status topic to replay on", "replay"))
            return
        for line in lines:
            await asyncio.sleep(self.message_interval)
            if line == INITIALISE_MARKER:
                logger.debug("%s Pausing MQTT log file playback", lp)
                await asyncio.sleep(self.initialise_interval)
                logger.debug("%s Resuming MQTT log file playback", lp)
                continue
            _ = self.events.emit(MqttEvent.MESSAGE, topic, line.encode())
        logger.debug("%s End of MQTT log file reached", lp)

    @override
    async def publish(
        self,
        topic: str,
        payload: str | bytes,
        *,
        qos: int = MQTT_QOS_AT_LEAST_ONCE,
        retain: bool = False,
    ) -> None:
        logger.debug("%s Ignoring MQTT publish to %s", self.lp, topic)

    @override
    async def subscribe(
        self,
        topics: Sequence[str],
        *,
        qos: int = MQTT_QOS_AT_LEAST_ONCE,
    ) -> list[SubscriptionGrant]:
        lp = f"{self.lp}subscribe:"
        logger.debug("%s Subscribed to MQTT topics: %s", lp, ", ".join(topics))
        status_topic = next((topic for topic in topics if "status" in topic), None)
        if status_topic is None:
            raise MqttTransportError("no status topic to replay messages on", "subscribe")
        self.topic = status_topic
        self._topic_known.set()
        return [SubscriptionGrant(topic, qos) for topic in topics]

    @override
    async def end(self) -> None:
        task, self._playback_task = self._playback_task, None
        if task is not None:
            logger.debug("%s Stopping replay MQTT client", self.lp)
            _ = task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self.connected:
            self.connected = False
            _ = self.events.emit(MqttEvent.CLOSE)
