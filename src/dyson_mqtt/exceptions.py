"""Exception hierarchy for the Dyson MQTT layer.

Errors raised by the transport, the subscription manager and the message
normalizer all derive from :class:`DysonMqttError`, so callers can catch the
whole family or a single failure mode.
"""

from __future__ import annotations

from collections.abc import Sequence

__all__ = [
    "CoordinatorStoppedError",
    "DeviceConfigError",
    "DysonMqttError",
    "MessageDecodeError",
    "MessageStructureError",
    "MessageValidationError",
    "MqttTransportError",
    "SubscriptionError",
    "UnknownMessageKindError",
]


class DysonMqttError(Exception):
    """Base class for all dyson-mqtt errors."""


class MqttTransportError(DysonMqttError):
    """The MQTT transport failed to connect, publish or subscribe.

    Attributes:
        reason: Specific failure reason
        operation: Transport operation that failed ("connect", "publish", ...)

    """

    def __init__(self, reason: str, operation: str = "unknown") -> None:
        """Initialize transport error with reason and operation."""
        self.reason: str = reason
        self.operation: str = operation
        super().__init__(f"MQTT {operation} failed: {reason}")


class SubscriptionError(DysonMqttError):
    """The broker rejected every requested topic.

    Attributes:
        topics: Topics that were requested

    """

    def __init__(self, topics: Sequence[str]) -> None:
        self.topics: list[str] = list(topics)
        count = len(self.topics)
        super().__init__(f"MQTT subscribe unsuccessful: all {count} topic{'' if count == 1 else 's'} rejected")


class MessageValidationError(DysonMqttError):
    """A single MQTT message could not be turned into a typed message.

    Attributes:
        topic: Topic the message was received on (or published to)
        reason: Specific failure reason

    """

    def __init__(self, reason: str, topic: str = "") -> None:
        self.reason: str = reason
        self.topic: str = topic
        suffix = f" (topic: {topic})" if topic else ""
        super().__init__(f"Invalid MQTT message: {reason}{suffix}")


class MessageDecodeError(MessageValidationError):
    """The payload is not valid JSON."""


class MessageStructureError(MessageValidationError):
    """The payload does not match the envelope or the shape of its kind.

    Attributes:
        errors: Validation details, one entry per failing location

    """

    def __init__(self, reason: str, topic: str = "", errors: Sequence[object] = ()) -> None:
        self.errors: list[object] = list(errors)
        super().__init__(reason, topic)


class UnknownMessageKindError(MessageValidationError):
    """The ``msg`` discriminant names no known message kind.

    Attributes:
        kind: The unrecognised discriminant

    """

    def __init__(self, kind: str, topic: str = "") -> None:
        self.kind: str = kind
        super().__init__(f"Unknown message type '{kind}'", topic)


class CoordinatorStoppedError(DysonMqttError):
    """An operation was attempted on (or interrupted by) a stopped coordinator."""

    def __init__(self, name: str) -> None:
        self.name: str = name
        super().__init__(f"MQTT coordinator for {name} has been stopped")


class DeviceConfigError(DysonMqttError):
    """Device credentials could not be derived from the supplied values."""
