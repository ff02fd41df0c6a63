"""Shared fixtures for unit tests.

This module provides device identities, fast MQTT settings, the fake
transport and sample Dyson payloads.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from dyson_mqtt.config import LocalDeviceConfig, MqttSettings
from tests.helpers.devices import AIR_ROOT, AIR_SERIAL, ROBOT_ROOT, ROBOT_SERIAL, make_dummy_secret, timestamp
from tests.helpers.fake_transport import FakeTransport

JSONDict = dict[str, Any]


@pytest.fixture
def settings() -> MqttSettings:
    """Settings with durations short enough for real-time tests."""
    return MqttSettings(
        wildcard_topic=False,
        log_payloads=False,
        log_payloads_json=False,
        min_down_time=0.1,
        reconnect_delay=0.01,
        reconnect_interval=0.05,
        connection_watchdog=0.5,
        keepalive=10,
    )


@pytest.fixture
def air_device() -> LocalDeviceConfig:
    return LocalDeviceConfig(
        name="Living Room Purifier",
        serial_number=AIR_SERIAL,
        root_topic=AIR_ROOT,
        host="192.0.2.10",
        password=make_dummy_secret("mqtt"),
    )


@pytest.fixture
def robot_device() -> LocalDeviceConfig:
    return LocalDeviceConfig(
        name="Robot Vacuum",
        serial_number=ROBOT_SERIAL,
        root_topic=ROBOT_ROOT,
        host="192.0.2.20",
        password=make_dummy_secret("mqtt"),
    )


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def air_current_state() -> Callable[..., JSONDict]:
    """Factory for an air treatment CURRENT-STATE payload as sent on the wire."""

    def _make(second: int = 0, fpwr: str = "ON") -> JSONDict:
        return {
            "msg": "CURRENT-STATE",
            "time": timestamp(second),
            "mode-reason": "LAPP",
            "state-reason": "MODE",
            "rssi": "-46",
            "channel": "1",
            "product-state": {"fpwr": fpwr, "fnsp": "0004", "auto": "OFF"},
            "scheduler": {"srsc": "0000000000000000", "dstv": "0001", "tzid": "0001"},
        }

    return _make


@pytest.fixture
def air_hello() -> JSONDict:
    return {
        "msg": "HELLO",
        "time": timestamp(1),
        "model": "TP07",
        "version": "0.0.0",
        "protocol": "1.0.0",
        "serialNumber": AIR_SERIAL,
        "mac address": "C8:FF:77:00:00:00",
        "reset-source": "PWUP",
    }


@pytest.fixture
def air_sensor_data() -> JSONDict:
    return {
        "msg": "ENVIRONMENTAL-CURRENT-SENSOR-DATA",
        "time": timestamp(2),
        "data": {"tact": "2956", "hact": "0043", "pm25": "0002", "pm10": "0003", "sltm": "OFF"},
    }


@pytest.fixture
def robot_current_state() -> JSONDict:
    return {
        "msg": "CURRENT-STATE",
        "time": timestamp(3),
        "state": "INACTIVE_CHARGED",
        "fullCleanType": "",
        "cleanId": "",
        "currentVacuumPowerMode": "halfPower",
        "defaultVacuumPowerMode": "halfPower",
        "globalPosition": [0, 0],
        "batteryChargeLevel": 100,
    }

