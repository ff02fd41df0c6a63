"""Connectivity and message coordination for Dyson MQTT devices."""

from .connection import ConnectionManager
from .coordinator import DysonMqtt, DysonMqttConfig
from .devices import DYSON_MQTT_CONFIG_360, DYSON_MQTT_CONFIG_AIR, DysonMqtt360, DysonMqttAir
from .filter import MessageFilter
from .parse import normalise_keys, parse_message
from .subscribe import SubscriptionConfig, SubscriptionManager, replace_topic_placeholders

__all__ = [
    "DYSON_MQTT_CONFIG_360",
    "DYSON_MQTT_CONFIG_AIR",
    "ConnectionManager",
    "DysonMqtt",
    "DysonMqtt360",
    "DysonMqttAir",
    "DysonMqttConfig",
    "MessageFilter",
    "SubscriptionConfig",
    "SubscriptionManager",
    "normalise_keys",
    "parse_message",
    "replace_topic_placeholders",
]
