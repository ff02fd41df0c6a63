"""Reliable, typed MQTT channel to Dyson robot vacuums and air treatment machines."""

from dyson_mqtt.config import (
    IoTCredentials,
    LocalDeviceConfig,
    MqttSettings,
    RemoteDeviceConfig,
    ReplayDeviceConfig,
    device_config_from_wifi,
)
from dyson_mqtt.exceptions import DysonMqttError
from dyson_mqtt.mqtt import DysonMqtt, DysonMqtt360, DysonMqttAir, DysonMqttConfig
from dyson_mqtt.structs import ReachabilityState, ReachabilityStatus

__version__ = "0.4.0"

__all__ = [
    "DysonMqtt",
    "DysonMqtt360",
    "DysonMqttAir",
    "DysonMqttConfig",
    "DysonMqttError",
    "IoTCredentials",
    "LocalDeviceConfig",
    "MqttSettings",
    "ReachabilityState",
    "ReachabilityStatus",
    "RemoteDeviceConfig",
    "ReplayDeviceConfig",
    "__version__",
    "device_config_from_wifi",
]
