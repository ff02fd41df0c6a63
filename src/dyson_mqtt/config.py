"""Device identities, broker credentials and per-coordinator MQTT settings."""

from __future__ import annotations

import base64
import hashlib
import re
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Self

from pydantic import BaseModel, ConfigDict, Field

from dyson_mqtt.const import (
    DYSON_MQTT_CONNECTION_WATCHDOG,
    DYSON_MQTT_KEEPALIVE,
    DYSON_MQTT_LOG_PAYLOADS,
    DYSON_MQTT_LOG_PAYLOADS_JSON,
    DYSON_MQTT_MIN_DOWN_TIME,
    DYSON_MQTT_RECONNECT_DELAY,
    DYSON_MQTT_RECONNECT_INTERVAL,
    DYSON_MQTT_WILDCARD_TOPIC,
    env_flag,
    env_float,
)
from dyson_mqtt.exceptions import DeviceConfigError

__all__ = [
    "DeviceConfig",
    "IoTCredentials",
    "LocalDeviceConfig",
    "MqttSettings",
    "RemoteDeviceConfig",
    "ReplayDeviceConfig",
    "device_config_from_wifi",
]

# Wi-Fi setup SSIDs printed on the product label
SSID_360EYE_RE = re.compile(r"^(360EYE-)?(?P<sn>[A-Z0-9]{3}-[A-Z]{2}-[A-Z0-9]{8,})")
SSID_OTHER_RE = re.compile(r"^DYSON-(?P<sn>[A-Z0-9]{3}-[A-Z]{2}-[A-Z0-9]{8,})-(?P<type>[0-9]{3}[A-Z]?)$")

# The 360 Eye label does not include its product type
TYPE_360EYE = "N223"

# Product types whose label differs from the MQTT root topic
TYPE_MAP: dict[str, str] = {"455A": "455"}


class MqttSettings(BaseModel):
    """Per-coordinator MQTT behaviour; durations are in seconds."""

    model_config = ConfigDict(frozen=True)

    wildcard_topic: bool = DYSON_MQTT_WILDCARD_TOPIC
    log_payloads: bool = DYSON_MQTT_LOG_PAYLOADS
    log_payloads_json: bool = DYSON_MQTT_LOG_PAYLOADS_JSON
    min_down_time: float = Field(default=DYSON_MQTT_MIN_DOWN_TIME, ge=0)
    reconnect_delay: float = Field(default=DYSON_MQTT_RECONNECT_DELAY, gt=0)
    reconnect_interval: float = Field(default=DYSON_MQTT_RECONNECT_INTERVAL, gt=0)
    connection_watchdog: float = Field(default=DYSON_MQTT_CONNECTION_WATCHDOG, gt=0)
    keepalive: int = Field(default=DYSON_MQTT_KEEPALIVE, gt=0)

    @classmethod
    def from_env(cls) -> Self:
        """Build settings from the current environment rather than the import-time constants."""
        return cls(
            wildcard_topic=env_flag("DYSON_MQTT_WILDCARD_TOPIC"),
            log_payloads=env_flag("DYSON_MQTT_LOG_PAYLOADS"),
            log_payloads_json=env_flag("DYSON_MQTT_LOG_PAYLOADS_JSON"),
            min_down_time=env_float("DYSON_MQTT_MIN_DOWN_TIME", 5.0),
            reconnect_delay=env_float("DYSON_MQTT_RECONNECT_DELAY", 1.0),
            reconnect_interval=env_float("DYSON_MQTT_RECONNECT_INTERVAL", 15.0),
            connection_watchdog=env_float("DYSON_MQTT_CONNECTION_WATCHDOG", 60.0),
            keepalive=int(env_float("DYSON_MQTT_KEEPALIVE", 10)),
        )


class IoTCredentials(BaseModel):
    """Cloud IoT broker credentials, as returned by the Dyson account API."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    endpoint: str = Field(alias="Endpoint")
    client_id: str = Field(alias="ClientId")
    custom_authorizer_name: str = Field(alias="CustomAuthorizerName")
    token_key: str = Field(alias="TokenKey")
    token_signature: str = Field(alias="TokenSignature")
    token_value: str = Field(alias="TokenValue")

    @classmethod
    def from_response(cls, response: dict[str, object]) -> Self:
        """Flatten an ``{"Endpoint": ..., "IoTCredentials": {...}}`` API response."""
        credentials = response.get("IoTCredentials")
        if not isinstance(credentials, dict):
            error_msg = "IoT credentials response has no 'IoTCredentials' object"
            raise DeviceConfigError(error_msg)
        return cls.model_validate({"Endpoint": response.get("Endpoint"), **credentials})

    @property
    def websocket_headers(self) -> dict[str, str]:
        return {
            self.token_key: self.token_value,
            "X-Amz-CustomAuthorizer-Name": self.custom_authorizer_name,
            "X-Amz-CustomAuthorizer-Signature": self.token_signature,
        }


class _DeviceConfigBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    serial_number: str
    root_topic: str


class LocalDeviceConfig(_DeviceConfigBase):
    """A device reached through the MQTT broker it runs on the local network."""

    host: str
    port: int = 1883
    password: str = Field(repr=False)


class RemoteDeviceConfig(_DeviceConfigBase):
    """A device reached through the Dyson cloud IoT broker.

    ``get_credentials`` is awaited before every connection attempt, since the
    authoriser token expires.
    """

    get_credentials: Callable[[], Awaitable[IoTCredentials]] = Field(repr=False)


class ReplayDeviceConfig(_DeviceConfigBase):
    """A device emulated by replaying a captured MQTT log file."""

    filename: Path


DeviceConfig = LocalDeviceConfig | RemoteDeviceConfig | ReplayDeviceConfig


def hash_wifi_password(password: str) -> str:
    """Convert a Wi-Fi setup password into the local MQTT broker password."""
    digest = hashlib.sha512(password.encode()).digest()
    return base64.b64encode(digest).decode()


def parse_ssid(ssid: str) -> tuple[str, str]:
    """Extract ``(root_topic, serial_number)`` from a Wi-Fi setup SSID.

    Raises:
        DeviceConfigError: If the SSID is not in a recognised format

    """
    match = SSID_360EYE_RE.match(ssid) or SSID_OTHER_RE.match(ssid)
    if not match:
        error_msg = f"Unable to parse Product SSID: {ssid}"
        raise DeviceConfigError(error_msg)
    groups = match.groupdict()
    product_type = groups.get("type") or TYPE_360EYE
    return TYPE_MAP.get(product_type, product_type), groups["sn"]


def device_config_from_wifi(
    name: str,
    ssid: str,
    wifi_password: str,
    host: str,
    port: int = 1883,
) -> LocalDeviceConfig:
    """Derive local MQTT credentials from the Wi-Fi setup label of a device."""
    root_topic, serial_number = parse_ssid(ssid)
    return LocalDeviceConfig(
        name=name,
        serial_number=serial_number,
        root_topic=root_topic,
        host=host,
        port=port,
        password=hash_wifi_password(wifi_password),
    )
