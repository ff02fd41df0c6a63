"""Derive concrete topics for a device, subscribe on every connection, classify received topics."""

from __future__ import annotations

from dyson_mqtt import metrics
from dyson_mqtt.config import MqttSettings
from dyson_mqtt.const import MQTT_QOS_AT_LEAST_ONCE, TOPIC_PLACEHOLDER, WILDCARD_TOPIC
from dyson_mqtt.events import AsyncEventEmitter, try_listener
from dyson_mqtt.exceptions import SubscriptionError
from dyson_mqtt.logging_abstraction import get_logger
from dyson_mqtt.structs import MqttEvent, MqttTopics, TopicStatus
from dyson_mqtt.transport import MqttTransport
from dyson_mqtt.utils import plural

__all__ = [
    "SubscriptionConfig",
    "SubscriptionManager",
    "TopicStatus",
    "replace_topic_placeholders",
]

logger = get_logger(__name__)

SubscriptionConfig = MqttTopics


def replace_topic_placeholders(template: str, root_topic: str, serial_number: str) -> str:
    """Resolve the first placeholder to the root topic and the second to the serial number.

    >>> replace_topic_placeholders("@/@/status/current", "475", "AB1-CD-EFG2345H")
    '475/AB1-CD-EFG2345H/status/current'
    """
    return template.replace(TOPIC_PLACEHOLDER, root_topic, 1).replace(TOPIC_PLACEHOLDER, serial_number, 1)


class SubscriptionManager:
    """(Re)subscribe to a device's topics whenever the transport connects.

    Emits ``subscribed`` after each successful subscription and ``error`` when
    a subscription attempt fails.
    """

    lp: str = "mqtt:subscribe:"

    def __init__(
        self,
        transport: MqttTransport,
        topics: MqttTopics,
        root_topic: str,
        serial_number: str,
        settings: MqttSettings,
    ) -> None:
        self.transport: MqttTransport = transport
        self.topics: MqttTopics = topics
        self.root_topic: str = root_topic
        self.serial_number: str = serial_number
        self.settings: MqttSettings = settings
        self.events: AsyncEventEmitter = AsyncEventEmitter(f"{serial_number}:subscribe")

        self._command_topic: str = self.resolve(topics.command)
        self._subscribe_topics: frozenset[str] = frozenset(self.resolve(t) for t in topics.subscribe)
        self._other_topics: frozenset[str] = frozenset(self.resolve(t) for t in topics.other)

        _ = transport.events.on(MqttEvent.CONNECT, try_listener(self.events, self._on_connect))

    @property
    def command_topic(self) -> str:
        """Topic on which commands are published."""
        return self._command_topic

    def resolve(self, template: str) -> str:
        return replace_topic_placeholders(template, self.root_topic, self.serial_number)

    async def _on_connect(self) -> None:
        await self.subscribe()
        _ = self.events.emit(MqttEvent.SUBSCRIBED)

    async def subscribe(self) -> None:
        """Subscribe to the required topics in a single request.

        Raises:
            SubscriptionError: If the broker rejected every topic
            MqttTransportError: If the request itself failed

        """
        lp = f"{self.lp}subscribe:"
        topics = [self.resolve(t) for t in self.topics.subscribe]
        if self.settings.wildcard_topic:
            # Cloud brokers disconnect clients that subscribe to '#'
            topics.append(self.command_topic if self.transport.cloud else WILDCARD_TOPIC)

        grants = await self.transport.subscribe(topics, qos=MQTT_QOS_AT_LEAST_ONCE)

        granted = {grant.topic for grant in grants if grant.granted}
        failures = [topic for topic in topics if topic not in granted]
        if not granted:
            metrics.record_subscription(self.serial_number, "rejected")
            raise SubscriptionError(topics)
        if failures:
            metrics.record_subscription(self.serial_number, "partial")
            logger.warning(
                "%s MQTT subscribe partially successful: %d of %s rejected",
                lp,
                len(failures),
                plural(len(topics), "topic"),
            )
            for topic in failures:
                logger.warning("%s     '%s'", lp, topic)
        else:
            metrics.record_subscription(self.serial_number, "granted")
            logger.info("%s MQTT subscribe successful: all %s granted", lp, plural(len(granted), "topic"))

    def check_topic(self, topic: str) -> TopicStatus:
        """Classify a received topic, diagnosing the likely cause when it is unexpected."""
        if topic == self._command_topic:
            return TopicStatus.COMMAND
        if topic in self._subscribe_topics:
            return TopicStatus.SUBSCRIBED
        if topic in self._other_topics:
            return TopicStatus.EXPECTED

        lp = f"{self.lp}check_topic:"
        parts = topic.split("/")
        root_topic = parts[0]
        serial_number = parts[1] if len(parts) > 1 else None
        if root_topic != self.root_topic:
            logger.warning(
                "%s MQTT topic root (product type) mismatch: expected '%s', received '%s'",
                lp,
                self.root_topic,
                root_topic,
            )
        elif serial_number != self.serial_number:
            logger.warning(
                "%s MQTT topic username (product serial number) mismatch: expected '%s', received '%s'",
                lp,
                self.serial_number,
                serial_number,
            )
        else:
            logger.warning("%s Unexpected MQTT topic received: %s", lp, topic)
        return TopicStatus.UNEXPECTED
