"""Unit tests for the connection manager."""

from __future__ import annotations

import asyncio
import logging
from itertools import pairwise
from typing_extensions import override
from unittest.mock import patch

import pytest

from dyson_mqtt.config import MqttSettings
from dyson_mqtt.exceptions import MqttTransportError
from dyson_mqtt.mqtt.connection import ConnectionManager
from dyson_mqtt.periodic import PeriodicStatus
from dyson_mqtt.structs import MqttEvent
from tests.helpers.expectations import wait_until
from tests.helpers.fake_transport import FakeTransport


class TestConnectionManagerLifecycle:
    """Tests for start() and stop()."""

    @pytest.mark.asyncio
    async def test_start_connects_and_emits_connect(self, settings: MqttSettings):
        """Test that start() connects the transport and re-emits connect."""
        transport = FakeTransport()
        manager = ConnectionManager(transport, settings, "SERIAL")
        connects: list[bool] = []
        _ = manager.events.on(MqttEvent.CONNECT, lambda: connects.append(True))

        manager.start()
        await wait_until(lambda: manager.connected, timeout=0.5)
        await manager.stop()

        assert transport.connect_calls == 1
        assert connects == [True]

    @pytest.mark.asyncio
    async def test_reconnects_after_close(self, settings: MqttSettings):
        """Test that a lost session is re-established on the next interval."""
        transport = FakeTransport()
        manager = ConnectionManager(transport, settings, "SERIAL")
        closes: list[bool] = []
        _ = manager.events.on(MqttEvent.CLOSE, lambda: closes.append(True))
        manager.start()
        await wait_until(lambda: manager.connected, timeout=0.5)

        transport.close()
        assert not manager.connected
        await wait_until(lambda: manager.connected, timeout=1.0)
        await manager.stop()

        assert transport.connect_calls == 2
        assert closes[0] is True

    @pytest.mark.asyncio
    async def test_keeps_retrying_while_connection_fails(self, settings: MqttSettings):
        """Test that failed attempts are repeated at the reconnect interval."""
        transport = FakeTransport(auto_open=False)
        manager = ConnectionManager(transport, settings, "SERIAL")

        manager.start()
        await wait_until(lambda: transport.connect_calls >= 3, timeout=1.0)
        await manager.stop()

        assert not manager.connected

    @pytest.mark.asyncio
    async def test_stop_ends_transport_and_is_idempotent(self, settings: MqttSettings):
        """Test that stop() disconnects once and no further attempts are made."""
        transport = FakeTransport()
        manager = ConnectionManager(transport, settings, "SERIAL")
        manager.start()
        await wait_until(lambda: manager.connected, timeout=0.5)

        await manager.stop()
        await manager.stop()
        calls = transport.connect_calls
        await asyncio.sleep(settings.reconnect_interval * 3)

        assert transport.end_calls == 1
        assert transport.connect_calls == calls
        assert manager.periodic.status is PeriodicStatus.STOPPED

    @pytest.mark.asyncio
    async def test_start_after_stop_does_nothing(self, settings: MqttSettings):
        """Test that a stopped manager cannot be restarted."""
        transport = FakeTransport()
        manager = ConnectionManager(transport, settings, "SERIAL")
        await manager.stop()

        manager.start()
        await asyncio.sleep(0.02)

        assert transport.connect_calls == 0


class RefusingTransport(FakeTransport):
    """Every connection attempt closes without a session, recording when it was made."""

    def __init__(self) -> None:
        super().__init__(auto_open=False)
        self.attempts: list[float] = []

    @override
    async def connect(self) -> None:
        await super().connect()
        self.attempts.append(asyncio.get_running_loop().time())
        self.close()


class TestConnectionManagerReconnect:
    """Tests for reconnection with backoff after a close."""

    @pytest.mark.asyncio
    async def test_close_reconnects_before_grace_period(self):
        """Test that a lost session is retried long before the fallback interval."""
        # Arrange
        settings = MqttSettings(
            min_down_time=0.1, reconnect_delay=0.02, reconnect_interval=0.3, connection_watchdog=5.0
        )
        transport = FakeTransport()
        manager = ConnectionManager(transport, settings, "SERIAL")
        manager.start()
        await wait_until(lambda: manager.connected, timeout=0.5)
        loop = asyncio.get_running_loop()

        # Act
        closed_at = loop.time()
        transport.close()
        await wait_until(lambda: manager.connected, timeout=settings.min_down_time)
        elapsed = loop.time() - closed_at
        await manager.stop()

        # Assert
        assert transport.connect_calls == 2
        assert elapsed < settings.min_down_time

    @pytest.mark.asyncio
    async def test_backoff_doubles_while_attempts_fail(self):
        """Test that consecutive failed attempts are spaced further and further apart."""
        settings = MqttSettings(reconnect_delay=0.01, reconnect_interval=10.0, connection_watchdog=5.0)
        transport = RefusingTransport()
        manager = ConnectionManager(transport, settings, "SERIAL")

        manager.start()
        await wait_until(lambda: len(transport.attempts) >= 4, timeout=1.0)
        await manager.stop()

        gaps = [later - earlier for earlier, later in pairwise(transport.attempts[:4])]
        assert gaps[2] > gaps[0]
        assert gaps[2] >= settings.reconnect_delay * 3

    @pytest.mark.asyncio
    async def test_backoff_is_capped_at_reconnect_interval(self):
        """Test that the delay never grows beyond the fallback interval."""
        settings = MqttSettings(reconnect_delay=0.01, reconnect_interval=0.03, connection_watchdog=5.0)
        transport = RefusingTransport()
        manager = ConnectionManager(transport, settings, "SERIAL")

        manager.start()
        await wait_until(lambda: len(transport.attempts) >= 6, timeout=1.0)
        await manager.stop()

        assert manager._backoff == settings.reconnect_interval

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_reconnect(self):
        """Test that a scheduled reconnection is abandoned when the manager stops."""
        settings = MqttSettings(reconnect_delay=5.0, reconnect_interval=10.0, connection_watchdog=5.0)
        transport = FakeTransport()
        manager = ConnectionManager(transport, settings, "SERIAL")
        manager.start()
        await wait_until(lambda: manager.connected, timeout=0.5)

        transport.close()
        task = manager.reconnect_task
        await manager.stop()

        assert task is not None
        assert task.cancelled()
        assert manager.reconnect_task is None
        assert transport.connect_calls == 1

    @pytest.mark.asyncio
    async def test_close_before_start_schedules_nothing(self, settings: MqttSettings):
        """Test that only a started manager reconnects."""
        transport = FakeTransport()
        manager = ConnectionManager(transport, settings, "SERIAL")

        transport.close()

        assert manager.reconnect_task is None


class TestConnectionManagerLogging:
    """Tests for session uptime logging and error surfacing."""

    @pytest.mark.asyncio
    async def test_short_session_logs_warning(self, settings: MqttSettings, caplog: pytest.LogCaptureFixture):
        """Test that a session shorter than ten seconds is logged as a warning."""
        transport = FakeTransport()
        manager = ConnectionManager(transport, settings, "SERIAL")

        with caplog.at_level(logging.INFO):
            transport.open()
            transport.close()

        records = [r for r in caplog.records if "closed stream after" in r.getMessage()]
        assert len(records) == 1
        assert records[0].levelno == logging.WARNING

    @pytest.mark.asyncio
    async def test_long_session_logs_info(self, settings: MqttSettings, caplog: pytest.LogCaptureFixture):
        """Test that a normal session close is logged at info and resets the backoff."""
        transport = FakeTransport()
        manager = ConnectionManager(transport, settings, "SERIAL")
        loop = asyncio.get_running_loop()
        manager._backoff = 8.0

        with caplog.at_level(logging.INFO):
            with patch.object(loop, "time", return_value=1000.0):
                transport.open()
            with patch.object(loop, "time", return_value=1125.0):
                transport.close()

        records = [r for r in caplog.records if "closed stream after" in r.getMessage()]
        assert records[0].levelno == logging.INFO
        assert "2 minutes 5 seconds" in records[0].getMessage()
        assert manager.connected is False
        assert manager._backoff == settings.reconnect_delay

    @pytest.mark.asyncio
    async def test_close_without_session_reports_failed_attempt(
        self, settings: MqttSettings, caplog: pytest.LogCaptureFixture
    ):
        """Test the log message when a connection attempt never succeeded."""
        transport = FakeTransport()
        _ = ConnectionManager(transport, settings, "SERIAL")

        with caplog.at_level(logging.INFO):
            transport.close()

        assert "closed stream after failed connection attempt" in caplog.text

    @pytest.mark.asyncio
    async def test_transport_error_is_re_emitted(self, settings: MqttSettings):
        """Test that transport errors are surfaced rather than dropped."""
        transport = FakeTransport()
        manager = ConnectionManager(transport, settings, "SERIAL")
        errors: list[Exception] = []
        _ = manager.events.on(MqttEvent.ERROR, errors.append)
        error = MqttTransportError("connection refused", "connect")

        _ = transport.events.emit(MqttEvent.ERROR, error)

        assert errors == [error]

    @pytest.mark.asyncio
    async def test_watchdog_reports_inactivity(self, caplog: pytest.LogCaptureFixture):
        """Test that a quiet link is reported once the watchdog expires."""
        settings = MqttSettings(reconnect_interval=10.0, connection_watchdog=0.05)
        transport = FakeTransport()
        manager = ConnectionManager(transport, settings, "SERIAL")

        with caplog.at_level(logging.WARNING):
            manager.start()
            await wait_until(lambda: manager.periodic.status is PeriodicStatus.DOWN, timeout=1.0)
            await manager.stop()

        assert "No MQTT activity for" in caplog.text
