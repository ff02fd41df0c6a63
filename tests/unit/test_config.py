"""Unit tests for settings, device identities and credentials."""

from __future__ import annotations

import base64
import hashlib

import pytest
from pydantic import ValidationError

from dyson_mqtt.config import (
    IoTCredentials,
    LocalDeviceConfig,
    MqttSettings,
    device_config_from_wifi,
    parse_ssid,
)
from dyson_mqtt.exceptions import DeviceConfigError
from tests.helpers.devices import make_dummy_secret
from tests.helpers.expectations import expect_exception


class TestMqttSettings:
    """Tests for MqttSettings."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch):
        """Test the documented defaults when the environment is empty."""
        for name in (
            "DYSON_MQTT_MIN_DOWN_TIME",
            "DYSON_MQTT_RECONNECT_DELAY",
            "DYSON_MQTT_RECONNECT_INTERVAL",
            "DYSON_MQTT_WILDCARD_TOPIC",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = MqttSettings.from_env()

        assert settings.min_down_time == 5.0
        assert settings.reconnect_delay == 1.0
        assert settings.reconnect_delay < settings.min_down_time
        assert settings.reconnect_interval == 15.0
        assert settings.connection_watchdog == 60.0
        assert settings.wildcard_topic is False

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch):
        """Test that environment variables override the defaults."""
        monkeypatch.setenv("DYSON_MQTT_MIN_DOWN_TIME", "2.5")
        monkeypatch.setenv("DYSON_MQTT_RECONNECT_DELAY", "0.5")
        monkeypatch.setenv("DYSON_MQTT_WILDCARD_TOPIC", "yes")
        monkeypatch.setenv("DYSON_MQTT_LOG_PAYLOADS", "true")

        settings = MqttSettings.from_env()

        assert settings.min_down_time == 2.5
        assert settings.reconnect_delay == 0.5
        assert settings.wildcard_topic is True
        assert settings.log_payloads is True

    def test_invalid_numbers_fall_back(self, monkeypatch: pytest.MonkeyPatch):
        """Test that unparsable or non-positive values use the default."""
        monkeypatch.setenv("DYSON_MQTT_RECONNECT_INTERVAL", "soon")
        monkeypatch.setenv("DYSON_MQTT_CONNECTION_WATCHDOG", "-1")

        settings = MqttSettings.from_env()

        assert settings.reconnect_interval == 15.0
        assert settings.connection_watchdog == 60.0

    def test_settings_are_validated_and_frozen(self):
        """Test field constraints and immutability."""
        with pytest.raises(ValidationError):
            _ = MqttSettings(reconnect_interval=0)

        settings = MqttSettings()
        with pytest.raises(ValidationError):
            settings.min_down_time = 1.0  # type: ignore[misc]


class TestWifiCredentials:
    """Tests for deriving local credentials from the Wi-Fi setup label."""

    @pytest.mark.parametrize(
        ("ssid", "root_topic", "serial_number"),
        [
            ("DYSON-AB1-CD-EFG2345H-475", "475", "AB1-CD-EFG2345H"),
            ("DYSON-AB1-CD-EFG2345H-455A", "455", "AB1-CD-EFG2345H"),
            ("DYSON-NK6-EU-MHA0000A-438K", "438K", "NK6-EU-MHA0000A"),
            ("360EYE-JH1-US-HBB1111A", "N223", "JH1-US-HBB1111A"),
            ("JH1-US-HBB1111A", "N223", "JH1-US-HBB1111A"),
        ],
    )
    def test_parse_ssid(self, ssid: str, root_topic: str, serial_number: str):
        """Test product type and serial number extraction."""
        assert parse_ssid(ssid) == (root_topic, serial_number)

    def test_unrecognised_ssid(self):
        """Test that an unknown SSID format is rejected."""
        error = expect_exception(parse_ssid, DeviceConfigError, "MyHomeNetwork")

        assert "Unable to parse Product SSID" in str(error)

    def test_device_config_from_wifi(self):
        """Test the derived local device configuration."""
        wifi_password = make_dummy_secret("wifi")

        device = device_config_from_wifi("Bedroom", "DYSON-AB1-CD-EFG2345H-475", wifi_password, "192.0.2.5")

        assert isinstance(device, LocalDeviceConfig)
        assert device.serial_number == "AB1-CD-EFG2345H"
        assert device.root_topic == "475"
        assert device.port == 1883
        expected = base64.b64encode(hashlib.sha512(wifi_password.encode()).digest()).decode()
        assert device.password == expected
        assert device.password not in repr(device)


class TestIoTCredentials:
    """Tests for cloud IoT credentials."""

    def test_from_response_and_headers(self):
        """Test flattening of the API response and the websocket authoriser headers."""
        token = make_dummy_secret("token")
        signature = make_dummy_secret("signature")
        response = {
            "Endpoint": "example-ats.iot.eu-west-1.amazonaws.com",
            "IoTCredentials": {
                "ClientId": "client-1",
                "CustomAuthorizerName": "CustomAuthorizer",
                "TokenKey": "token",
                "TokenSignature": signature,
                "TokenValue": token,
            },
        }

        credentials = IoTCredentials.from_response(response)

        assert credentials.endpoint == "example-ats.iot.eu-west-1.amazonaws.com"
        assert credentials.client_id == "client-1"
        assert credentials.websocket_headers == {
            "token": token,
            "X-Amz-CustomAuthorizer-Name": "CustomAuthorizer",
            "X-Amz-CustomAuthorizer-Signature": signature,
        }

    def test_missing_credentials_object(self):
        """Test that a malformed response is a configuration error."""
        _ = expect_exception(IoTCredentials.from_response, DeviceConfigError, {"Endpoint": "host"})
