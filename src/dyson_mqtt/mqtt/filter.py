"""Suppress duplicated and reordered Dyson MQTT messages.

Devices resend their state on every reconnection and QoS 1 delivery permits
duplicates, so the last accepted message of each kind is remembered and new
messages are compared against it:

- ``REORDERED``: both messages have timestamps and the new one is older.
- ``DUPLICATE``: at least one of the two has a timestamp and, ignoring the
  timestamp, their content is identical.

Messages without timestamps are never filtered.
"""

from __future__ import annotations

from dyson_mqtt.logging_abstraction import get_logger
from dyson_mqtt.messages import DysonMsg
from dyson_mqtt.structs import FilterResult

__all__ = ["FilterResult", "MessageFilter"]

logger = get_logger(__name__)


class MessageFilter:
    lp: str = "mqtt:filter:"

    def __init__(self) -> None:
        self.last_msg: dict[str, DysonMsg] = {}

    def filter(self, msg: DysonMsg) -> FilterResult | None:
        """Classify ``msg``; returns ``None`` (and remembers it) when it should be dispatched."""
        last = self.last_msg.get(msg.msg)
        if last is not None:
            new_time, last_time = msg.timestamp, last.timestamp
            if new_time is not None and last_time is not None and new_time < last_time:
                logger.debug("%s %s at %s predates %s", self.lp, msg.msg, msg.time, last.time)
                return FilterResult.REORDERED
            if (new_time is not None or last_time is not None) and msg.content() == last.content():
                return FilterResult.DUPLICATE
        self.last_msg[msg.msg] = msg.model_copy(deep=True)
        return None
