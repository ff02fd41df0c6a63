"""Device identities and session helpers shared by the unit tests."""

from __future__ import annotations

import secrets

from dyson_mqtt.mqtt import DysonMqtt
from tests.helpers.fake_transport import FakeTransport

AIR_SERIAL = "AB1-CD-EFG2345H"
AIR_ROOT = "475"
ROBOT_SERIAL = "JH1-US-HBB1111A"
ROBOT_ROOT = "N223"


def make_dummy_secret(prefix: str = "secret") -> str:
    """Return a deterministic-looking but non-literal secret string for tests."""
    return f"{prefix}-{secrets.token_hex(16)}"


def timestamp(second: int) -> str:
    """ISO-8601 timestamp a given number of seconds into a fixed minute."""
    return f"2025-06-01T12:00:{second:02d}.000Z"


async def open_session(coordinator: DysonMqtt, transport: FakeTransport) -> None:
    """Open a broker session and wait until subscription and its listeners have completed."""
    transport.open()
    await transport.events.drain()
    await coordinator.events.drain()
