"""Capability interface shared by every MQTT transport variant."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass

from dyson_mqtt.const import MQTT_QOS_AT_LEAST_ONCE, MQTT_SUBACK_FAILURE
from dyson_mqtt.events import AsyncEventEmitter

__all__ = ["MqttTransport", "SubscriptionGrant"]


@dataclass(frozen=True)
class SubscriptionGrant:
    """Broker response for one requested topic; a QoS of 0x80 or above is a rejection."""

    topic: str
    qos: int

    @property
    def granted(self) -> bool:
        return self.qos < MQTT_SUBACK_FAILURE


class MqttTransport(ABC):
    """A publish/subscribe client for a single Dyson device.

    Events (on ``self.events``):
        connect: a broker session has been established
        close: the session ended or a connection attempt failed
        message: ``(topic: str, payload: bytes)`` received on a subscribed topic
        error: ``(exc: Exception)`` connection or session failure

    Subscriptions do not survive a reconnection.
    """

    lp: str = "transport:"

    # Cloud brokers disconnect clients that subscribe to broad wildcards
    cloud: bool = False

    def __init__(self, name: str) -> None:
        self.name: str = name
        self.events: AsyncEventEmitter = AsyncEventEmitter(f"{name}:transport")
        self.connected: bool = False

    @abstractmethod
    async def connect(self) -> None:
        """Start (re)connecting; returns once the attempt has been initiated."""

    @abstractmethod
    async def publish(
        self,
        topic: str,
        payload: str | bytes,
        *,
        qos: int = MQTT_QOS_AT_LEAST_ONCE,
        retain: bool = False,
    ) -> None:
        """Publish a payload, returning once the transport has accepted it."""

    @abstractmethod
    async def subscribe(
        self,
        topics: Sequence[str],
        *,
        qos: int = MQTT_QOS_AT_LEAST_ONCE,
    ) -> list[SubscriptionGrant]:
        """Subscribe to all topics in a single request, returning one grant per topic."""

    @abstractmethod
    async def end(self) -> None:
        """Disconnect and release all resources; idempotent."""
