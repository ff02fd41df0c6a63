"""Prometheus metrics registry for Dyson MQTT coordinators."""

import threading
from typing import Final

from prometheus_client import (  # type: ignore[import-untyped]
    Counter,
    Gauge,
    start_http_server,
)

__all__ = [
    "record_message_filtered",
    "record_message_invalid",
    "record_message_published",
    "record_message_received",
    "record_reachable",
    "record_subscription",
    "record_transport_event",
    "start_metrics_server",
]

dyson_mqtt_messages_received_total: Final = Counter(  # type: ignore[assignment]
    "dyson_mqtt_messages_received_total",
    "Total MQTT messages received",
    ["serial_number", "topic_status"],
)

dyson_mqtt_messages_filtered_total: Final = Counter(  # type: ignore[assignment]
    "dyson_mqtt_messages_filtered_total",
    "Total received messages dropped by the message filter",
    ["serial_number", "result"],
)

dyson_mqtt_messages_invalid_total: Final = Counter(  # type: ignore[assignment]
    "dyson_mqtt_messages_invalid_total",
    "Total received messages that failed decoding or validation",
    ["serial_number", "reason"],
)

dyson_mqtt_messages_published_total: Final = Counter(  # type: ignore[assignment]
    "dyson_mqtt_messages_published_total",
    "Total command messages published",
    ["serial_number", "msg"],
)

dyson_mqtt_subscriptions_total: Final = Counter(  # type: ignore[assignment]
    "dyson_mqtt_subscriptions_total",
    "Total subscription attempts",
    ["serial_number", "outcome"],
)

dyson_mqtt_transport_events_total: Final = Counter(  # type: ignore[assignment]
    "dyson_mqtt_transport_events_total",
    "Total transport connect and close events",
    ["serial_number", "event"],
)

dyson_mqtt_reachable: Final = Gauge(  # type: ignore[assignment]
    "dyson_mqtt_reachable",
    "Whether the device is currently reachable (1) or not (0)",
    ["serial_number"],
)

_server_state = {"started": False}
_server_lock = threading.Lock()


def start_metrics_server(port: int = 9400) -> None:
    """Start Prometheus HTTP metrics server (idempotent)."""
    with _server_lock:
        if not _server_state["started"]:
            start_http_server(port)  # type: ignore[no-untyped-call]
            _server_state["started"] = True


def record_message_received(serial_number: str, topic_status: str) -> None:
    dyson_mqtt_messages_received_total.labels(serial_number=serial_number, topic_status=topic_status).inc()  # type: ignore[no-untyped-call]


def record_message_filtered(serial_number: str, result: str) -> None:
    dyson_mqtt_messages_filtered_total.labels(serial_number=serial_number, result=result).inc()  # type: ignore[no-untyped-call]


def record_message_invalid(serial_number: str, reason: str) -> None:
    """Record a message dropped because it could not be decoded or validated."""
    dyson_mqtt_messages_invalid_total.labels(serial_number=serial_number, reason=reason).inc()  # type: ignore[no-untyped-call]


def record_message_published(serial_number: str, msg: str) -> None:
    dyson_mqtt_messages_published_total.labels(serial_number=serial_number, msg=msg).inc()  # type: ignore[no-untyped-call]


def record_subscription(serial_number: str, outcome: str) -> None:
    """Record a subscription attempt ("granted", "partial" or "rejected")."""
    dyson_mqtt_subscriptions_total.labels(serial_number=serial_number, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_transport_event(serial_number: str, event: str) -> None:
    dyson_mqtt_transport_events_total.labels(serial_number=serial_number, event=event).inc()  # type: ignore[no-untyped-call]


def record_reachable(serial_number: str, reachable: bool) -> None:
    dyson_mqtt_reachable.labels(serial_number=serial_number).set(1 if reachable else 0)  # type: ignore[no-untyped-call]
