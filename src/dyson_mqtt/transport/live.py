"""aiomqtt based transports for the local device broker and the cloud IoT broker."""

from __future__ import annotations

import asyncio
import contextlib
import ssl
from abc import abstractmethod
from collections.abc import Sequence
from typing import Any

import aiomqtt
from typing_extensions import override

from dyson_mqtt.config import LocalDeviceConfig, MqttSettings, RemoteDeviceConfig
from dyson_mqtt.const import MQTT_QOS_AT_LEAST_ONCE, MQTT_SUBACK_FAILURE
from dyson_mqtt.exceptions import MqttTransportError
from dyson_mqtt.logging_abstraction import get_logger
from dyson_mqtt.structs import MqttEvent
from dyson_mqtt.transport.base import MqttTransport, SubscriptionGrant

__all__ = ["AiomqttTransport", "LocalMqttTransport", "RemoteMqttTransport"]

logger = get_logger(__name__)


def _payload_bytes(payload: object) -> bytes:
    if payload is None:
        return b""
    if isinstance(payload, bytes | bytearray):
        return bytes(payload)
    return str(payload).encode()


def _reason_code(code: object) -> int:
    # SUBACK entries are paho ReasonCode objects or plain ints
    value = getattr(code, "value", code)
    return int(value) if isinstance(value, int) else MQTT_SUBACK_FAILURE


class AiomqttTransport(MqttTransport):
    """Run one aiomqtt session per connection attempt in a background task."""

    lp: str = "transport:aiomqtt:"

    def __init__(self, name: str, settings: MqttSettings) -> None:
        super().__init__(name)
        self.settings: MqttSettings = settings
        self.client: aiomqtt.Client | None = None
        self._session_task: asyncio.Task[None] | None = None
        self._ending: bool = False
        self._count: int = 0

    @abstractmethod
    async def client_options(self) -> dict[str, Any]:
        """Keyword arguments for a new ``aiomqtt.Client`` (fetched for every connection)."""

    @override
    async def connect(self) -> None:
        lp = f"{self.lp}connect:"
        if self._ending:
            return
        if self._session_task is not None and not self._session_task.done():
            logger.debug("%s Session already active or connecting", lp)
            return
        self._count += 1
        logger.debug("%s Creating MQTT client #%d", lp, self._count)
        self._session_task = asyncio.create_task(self._session(), name=f"{self.name} mqtt session")

    async def _session(self) -> None:
        lp = f"{self.lp}session:"
        operation = "connect"
        try:
            options = await self.client_options()
            client = aiomqtt.Client(**options)
            async with client:
                self.client = client
                self.connected = True
                operation = "receive"
                logger.info("%s MQTT client connected to %s", lp, options.get("hostname"))
                _ = self.events.emit(MqttEvent.CONNECT)
                async for message in client.messages:
                    _ = self.events.emit(MqttEvent.MESSAGE, str(message.topic), _payload_bytes(message.payload))
        except asyncio.CancelledError:
            logger.debug("%s Session task cancelled", lp)
            raise
        except aiomqtt.MqttError as exc:
            logger.warning("%s MQTT %s error: %s", lp, operation, exc)
            _ = self.events.emit(MqttEvent.ERROR, MqttTransportError(str(exc), operation))
        except Exception as exc:
            # Credentials could not be obtained, or the client options were rejected
            logger.exception("%s MQTT client could not be created", lp)
            _ = self.events.emit(MqttEvent.ERROR, MqttTransportError(str(exc), operation))
        finally:
            self.client = None
            self.connected = False
            _ = self.events.emit(MqttEvent.CLOSE)

    def _require_client(self, operation: str) -> aiomqtt.Client:
        if self.client is None:
            raise MqttTransportError("not connected", operation)
        return self.client

    @override
    async def publish(
        self,
        topic: str,
        payload: str | bytes,
        *,
        qos: int = MQTT_QOS_AT_LEAST_ONCE,
        retain: bool = False,
    ) -> None:
        client = self._require_client("publish")
        try:
            await client.publish(topic, payload, qos=qos, retain=retain)
        except aiomqtt.MqttError as exc:
            raise MqttTransportError(str(exc), "publish") from exc

    @override
    async def subscribe(
        self,
        topics: Sequence[str],
        *,
        qos: int = MQTT_QOS_AT_LEAST_ONCE,
    ) -> list[SubscriptionGrant]:
        client = self._require_client("subscribe")
        try:
            codes = await client.subscribe([(topic, qos) for topic in topics])
        except aiomqtt.MqttError as exc:
            raise MqttTransportError(str(exc), "subscribe") from exc
        return [SubscriptionGrant(topic, _reason_code(code)) for topic, code in zip(topics, codes, strict=False)]

    @override
    async def end(self) -> None:
        lp = f"{self.lp}end:"
        self._ending = True
        task, self._session_task = self._session_task, None
        if task is None:
            return
        logger.info("%s Stopping MQTT client...", lp)
        _ = task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("%s MQTT client stopped", lp)


class LocalMqttTransport(AiomqttTransport):
    """Plain TCP connection to the broker running on the device itself."""

    lp: str = "transport:local:"
    cloud: bool = False

    def __init__(self, device: LocalDeviceConfig, settings: MqttSettings) -> None:
        super().__init__(device.name, settings)
        self.device: LocalDeviceConfig = device

    @override
    async def client_options(self) -> dict[str, Any]:
        return {
            "hostname": self.device.host,
            "port": self.device.port,
            "username": self.device.serial_number,
            "password": self.device.password,
            "keepalive": self.settings.keepalive,
            "protocol": aiomqtt.ProtocolVersion.V31,
        }


class RemoteMqttTransport(AiomqttTransport):
    """Secure websocket connection to the Dyson cloud IoT broker."""

    lp: str = "transport:remote:"
    cloud: bool = True

    def __init__(self, device: RemoteDeviceConfig, settings: MqttSettings) -> None:
        super().__init__(device.name, settings)
        self.device: RemoteDeviceConfig = device

    @override
    async def client_options(self) -> dict[str, Any]:
        # Authoriser tokens expire; fetch them for every connection
        credentials = await self.device.get_credentials()
        return {
            "hostname": credentials.endpoint,
            "port": 443,
            "identifier": credentials.client_id,
            "keepalive": self.settings.keepalive,
            "protocol": aiomqtt.ProtocolVersion.V31,
            "transport": "websockets",
            "websocket_path": "/mqtt",
            "websocket_headers": credentials.websocket_headers,
            "tls_context": ssl.create_default_context(),
        }
