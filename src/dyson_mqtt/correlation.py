"""
Correlation IDs for the inbound MQTT message pipeline.

Each received message is classified, decoded, validated, filtered and
dispatched inside its own correlation scope, so every log line about that
message carries the same short id. The id lives in a contextvar and is
therefore safe across concurrent coordinators and listener tasks.
"""

from __future__ import annotations

import contextvars
import uuid
from collections.abc import Generator
from contextlib import contextmanager

__all__ = [
    "correlation_context",
    "ensure_correlation_id",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
]

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "dyson_mqtt_correlation_id",
    default=None,
)


def generate_correlation_id(prefix: str | None = None) -> str:
    """
    Generate a new correlation ID.

    Args:
        prefix: Optional label (e.g. a device serial number) prepended as ``prefix:``

    Returns:
        UUID4 hex, optionally prefixed
    """
    corr_id = uuid.uuid4().hex
    return f"{prefix}:{corr_id}" if prefix else corr_id


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> contextvars.Token[str | None]:
    """Set the correlation ID for the current context and return the reset token."""
    return _correlation_id.set(correlation_id)


@contextmanager
def correlation_context(
    correlation_id: str | None = None,
    auto_generate: bool = True,
) -> Generator[str | None]:
    """
    Scope a correlation ID to a block, restoring the previous one on exit.

    Example:
        with correlation_context() as corr_id:
            logger.info("Received %s", topic)
    """
    if correlation_id is None and auto_generate:
        correlation_id = generate_correlation_id()

    token = set_correlation_id(correlation_id)
    try:
        yield correlation_id
    finally:
        _correlation_id.reset(token)


def ensure_correlation_id() -> str:
    """Return the current correlation ID, generating one for task entry points without one."""
    current_id = get_correlation_id()
    if current_id is None:
        current_id = generate_correlation_id()
        _ = set_correlation_id(current_id)
    return current_id
