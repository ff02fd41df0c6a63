"""Unit tests for the aiomqtt based transports (client patched out)."""

from __future__ import annotations

import asyncio
import ssl
from collections.abc import AsyncIterator, Sequence
from pathlib import Path
from types import SimpleNamespace
from typing import Any, ClassVar
from unittest.mock import patch

import aiomqtt
import pytest

from dyson_mqtt.config import (
    IoTCredentials,
    LocalDeviceConfig,
    MqttSettings,
    RemoteDeviceConfig,
    ReplayDeviceConfig,
)
from dyson_mqtt.const import MQTT_SUBACK_FAILURE
from dyson_mqtt.exceptions import MqttTransportError
from dyson_mqtt.structs import MqttEvent
from dyson_mqtt.transport import (
    LocalMqttTransport,
    RemoteMqttTransport,
    ReplayMqttTransport,
    create_transport,
)
from tests.helpers.devices import AIR_ROOT, AIR_SERIAL, make_dummy_secret
from tests.helpers.expectations import expect_async_exception, expect_exception, wait_until

STATUS_TOPIC = f"{AIR_ROOT}/{AIR_SERIAL}/status/current"


class FakeClient:
    """Stand-in for ``aiomqtt.Client`` that is fed messages through a queue."""

    instances: ClassVar[list[FakeClient]] = []

    def __init__(self, **options: Any) -> None:
        self.options: dict[str, Any] = options
        self.queue: asyncio.Queue[SimpleNamespace | None] = asyncio.Queue()
        self.published: list[tuple[str, str | bytes, int, bool]] = []
        self.reject: set[str] = set()
        FakeClient.instances.append(self)

    async def __aenter__(self) -> FakeClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None

    @property
    def messages(self) -> AsyncIterator[SimpleNamespace]:
        return self._messages()

    async def _messages(self) -> AsyncIterator[SimpleNamespace]:
        while True:
            message = await self.queue.get()
            if message is None:
                error_msg = "Disconnected during message iteration"
                raise aiomqtt.MqttError(error_msg)
            yield message

    async def publish(self, topic: str, payload: str | bytes, qos: int = 0, retain: bool = False) -> None:
        self.published.append((topic, payload, qos, retain))

    async def subscribe(self, topics: Sequence[tuple[str, int]]) -> list[int]:
        return [MQTT_SUBACK_FAILURE if topic in self.reject else qos for topic, qos in topics]


@pytest.fixture
def fake_client():
    FakeClient.instances.clear()
    with patch("dyson_mqtt.transport.live.aiomqtt.Client", FakeClient):
        yield FakeClient


def make_credentials() -> IoTCredentials:
    return IoTCredentials(
        endpoint="example-ats.iot.eu-west-1.amazonaws.com",
        client_id="client-1",
        custom_authorizer_name="CustomAuthorizer",
        token_key="token",
        token_signature=make_dummy_secret("signature"),
        token_value=make_dummy_secret("token"),
    )


def make_remote_device(credentials: IoTCredentials | Exception) -> RemoteDeviceConfig:
    async def get_credentials() -> IoTCredentials:
        if isinstance(credentials, Exception):
            raise credentials
        return credentials

    return RemoteDeviceConfig(
        name="Cloud Purifier", serial_number=AIR_SERIAL, root_topic=AIR_ROOT, get_credentials=get_credentials
    )


class TestClientOptions:
    """Tests for the per-variant aiomqtt client options."""

    @pytest.mark.asyncio
    async def test_local_options(self, air_device: LocalDeviceConfig, settings: MqttSettings):
        """Test that the local broker is reached with the serial number and hashed password."""
        transport = LocalMqttTransport(air_device, settings)

        options = await transport.client_options()

        assert options["hostname"] == air_device.host
        assert options["port"] == 1883
        assert options["username"] == AIR_SERIAL
        assert options["password"] == air_device.password
        assert options["keepalive"] == settings.keepalive
        assert options["protocol"] == aiomqtt.ProtocolVersion.V31
        assert transport.cloud is False

    @pytest.mark.asyncio
    async def test_remote_options(self, settings: MqttSettings):
        """Test that the cloud broker is reached over secure websockets with authoriser headers."""
        credentials = make_credentials()
        transport = RemoteMqttTransport(make_remote_device(credentials), settings)

        options = await transport.client_options()

        assert options["hostname"] == credentials.endpoint
        assert options["port"] == 443
        assert options["identifier"] == "client-1"
        assert options["transport"] == "websockets"
        assert options["websocket_headers"] == credentials.websocket_headers
        assert isinstance(options["tls_context"], ssl.SSLContext)
        assert transport.cloud is True


class TestAiomqttSession:
    """Tests for the background aiomqtt session."""

    @pytest.mark.asyncio
    async def test_session_round_trip(
        self, fake_client: type[FakeClient], air_device: LocalDeviceConfig, settings: MqttSettings
    ):
        """Test connect, receive, publish, subscribe and end on one session."""
        transport = LocalMqttTransport(air_device, settings)
        events: list[str] = []
        received: list[tuple[str, bytes]] = []
        _ = transport.events.on(MqttEvent.CONNECT, lambda: events.append("connect"))
        _ = transport.events.on(MqttEvent.CLOSE, lambda: events.append("close"))
        _ = transport.events.on(MqttEvent.MESSAGE, lambda topic, payload: received.append((topic, payload)))

        await transport.connect()
        await wait_until(lambda: transport.connected)
        client = fake_client.instances[0]
        client.reject.add(f"{AIR_ROOT}/{AIR_SERIAL}/status/faults")
        client.queue.put_nowait(SimpleNamespace(topic=STATUS_TOPIC, payload='{"msg": "HELLO"}'))
        await wait_until(lambda: len(received) == 1)

        await transport.publish(f"{AIR_ROOT}/{AIR_SERIAL}/command", "{}", qos=1)
        grants = await transport.subscribe([STATUS_TOPIC, f"{AIR_ROOT}/{AIR_SERIAL}/status/faults"])
        await transport.end()

        assert events == ["connect", "close"]
        assert received == [(STATUS_TOPIC, b'{"msg": "HELLO"}')]
        assert client.published == [(f"{AIR_ROOT}/{AIR_SERIAL}/command", "{}", 1, False)]
        assert [grant.granted for grant in grants] == [True, False]
        assert not transport.connected

    @pytest.mark.asyncio
    async def test_connect_while_active_is_ignored(
        self, fake_client: type[FakeClient], air_device: LocalDeviceConfig, settings: MqttSettings
    ):
        """Test that a second connect() does not create another client."""
        transport = LocalMqttTransport(air_device, settings)

        await transport.connect()
        await wait_until(lambda: transport.connected)
        await transport.connect()
        await transport.end()

        assert len(fake_client.instances) == 1

    @pytest.mark.asyncio
    async def test_session_error_emits_error_then_close(
        self, fake_client: type[FakeClient], air_device: LocalDeviceConfig, settings: MqttSettings
    ):
        """Test that a broken session is reported and closed."""
        transport = LocalMqttTransport(air_device, settings)
        errors: list[Exception] = []
        closes: list[bool] = []
        _ = transport.events.on(MqttEvent.ERROR, errors.append)
        _ = transport.events.on(MqttEvent.CLOSE, lambda: closes.append(True))

        await transport.connect()
        await wait_until(lambda: transport.connected)
        fake_client.instances[0].queue.put_nowait(None)
        await wait_until(lambda: bool(closes))
        await transport.end()

        assert isinstance(errors[0], MqttTransportError)
        assert errors[0].operation == "receive"
        assert not transport.connected

    @pytest.mark.asyncio
    async def test_credentials_failure_is_a_failed_attempt(
        self, fake_client: type[FakeClient], settings: MqttSettings
    ):
        """Test that failing to fetch cloud credentials reports a connect error."""
        transport = RemoteMqttTransport(make_remote_device(RuntimeError("token expired")), settings)
        errors: list[Exception] = []
        closes: list[bool] = []
        _ = transport.events.on(MqttEvent.ERROR, errors.append)
        _ = transport.events.on(MqttEvent.CLOSE, lambda: closes.append(True))

        await transport.connect()
        await wait_until(lambda: bool(closes))
        await transport.end()

        assert fake_client.instances == []
        assert isinstance(errors[0], MqttTransportError)
        assert errors[0].operation == "connect"

    @pytest.mark.asyncio
    async def test_publish_requires_session(self, air_device: LocalDeviceConfig, settings: MqttSettings):
        """Test that publishing without a session fails."""
        transport = LocalMqttTransport(air_device, settings)

        error = await expect_async_exception(transport.publish, MqttTransportError, STATUS_TOPIC, "{}")

        assert error.operation == "publish"

    @pytest.mark.asyncio
    async def test_no_reconnect_after_end(
        self, fake_client: type[FakeClient], air_device: LocalDeviceConfig, settings: MqttSettings
    ):
        """Test that connect() does nothing once the transport has been ended."""
        transport = LocalMqttTransport(air_device, settings)

        await transport.end()
        await transport.connect()

        assert fake_client.instances == []


class TestCreateTransport:
    """Tests for create_transport()."""

    def test_variant_follows_device_type(self, air_device: LocalDeviceConfig, settings: MqttSettings, tmp_path: Path):
        """Test that each device configuration selects its transport."""
        replay = ReplayDeviceConfig(
            name="Replay", serial_number=AIR_SERIAL, root_topic=AIR_ROOT, filename=tmp_path / "session.log"
        )

        assert isinstance(create_transport(air_device, settings), LocalMqttTransport)
        assert isinstance(create_transport(make_remote_device(make_credentials()), settings), RemoteMqttTransport)
        assert isinstance(create_transport(replay, settings), ReplayMqttTransport)

    def test_unsupported_device(self, settings: MqttSettings):
        """Test that an unknown configuration type is rejected."""
        _ = expect_exception(create_transport, TypeError, object(), settings)  # type: ignore[arg-type]
