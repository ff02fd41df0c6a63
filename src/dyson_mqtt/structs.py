"""Core data structures for the Dyson MQTT layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

__all__ = [
    "FilterResult",
    "MqttEvent",
    "MqttTopics",
    "ReachabilityReason",
    "ReachabilityState",
    "ReachabilityStatus",
    "TopicStatus",
]


class MqttEvent(StrEnum):
    """Event names emitted by transports, managers and coordinators."""

    CONNECT = "connect"
    CLOSE = "close"
    MESSAGE = "message"
    ERROR = "error"
    SUBSCRIBED = "subscribed"
    STATUS = "status"


class TopicStatus(StrEnum):
    """Classification of a concrete topic against the subscription configuration."""

    COMMAND = "command"
    SUBSCRIBED = "subscribed"
    EXPECTED = "expected"
    UNEXPECTED = "unexpected"


class FilterResult(StrEnum):
    """Reason a received message was dropped by the message filter."""

    DUPLICATE = "duplicate"
    REORDERED = "reordered"


class ReachabilityReason(StrEnum):
    """Independent causes for the device being considered down."""

    TRANSPORT = "mqtt"
    MESSAGE = "msg"


class ReachabilityState(StrEnum):
    """Externally observable reachability, including the grace period."""

    UNREACHABLE = "unreachable"
    PENDING_UNREACHABLE = "pending_unreachable"
    REACHABLE = "reachable"


@dataclass(frozen=True)
class ReachabilityStatus:
    """Snapshot of the coordinator status; replaced (never mutated) on change."""

    reachable: bool = False
    initialised: bool = False

    @property
    def ready(self) -> bool:
        return self.reachable and self.initialised


@dataclass(frozen=True)
class MqttTopics:
    """Topic templates for one device family.

    Each template may contain the ``@`` placeholder up to twice: the first
    occurrence resolves to the root topic, the second to the serial number.
    """

    command: str
    subscribe: tuple[str, ...]
    other: tuple[str, ...] = field(default=())

