"""MQTT transports: local broker, cloud IoT broker, and log file replay.

The variant is chosen once, from the type of the device configuration.
"""

from __future__ import annotations

from dyson_mqtt.config import (
    DeviceConfig,
    LocalDeviceConfig,
    MqttSettings,
    RemoteDeviceConfig,
    ReplayDeviceConfig,
)

from .base import MqttTransport, SubscriptionGrant
from .live import AiomqttTransport, LocalMqttTransport, RemoteMqttTransport
from .replay import ReplayMqttTransport, read_replay_log

__all__ = [
    "AiomqttTransport",
    "LocalMqttTransport",
    "MqttTransport",
    "RemoteMqttTransport",
    "ReplayMqttTransport",
    "SubscriptionGrant",
    "create_transport",
    "read_replay_log",
]


def create_transport(device: DeviceConfig, settings: MqttSettings) -> MqttTransport:
    """Select the transport variant matching the device configuration."""
    match device:
        case LocalDeviceConfig():
            return LocalMqttTransport(device, settings)
        case RemoteDeviceConfig():
            return RemoteMqttTransport(device, settings)
        case ReplayDeviceConfig():
            return ReplayMqttTransport(device)
    error_msg = f"Unsupported device configuration: {type(device).__name__}"
    raise TypeError(error_msg)
