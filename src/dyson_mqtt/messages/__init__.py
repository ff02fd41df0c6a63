"""Typed Dyson MQTT message envelopes for each device family."""

from .air import AIR_MESSAGES
from .base import CommandMsg, DysonEnvelope, DysonMsg, MessageRegistry, ModeReason, StateReason
from .robot import ROBOT_MESSAGES

__all__ = [
    "AIR_MESSAGES",
    "ROBOT_MESSAGES",
    "CommandMsg",
    "DysonEnvelope",
    "DysonMsg",
    "MessageRegistry",
    "ModeReason",
    "StateReason",
]
