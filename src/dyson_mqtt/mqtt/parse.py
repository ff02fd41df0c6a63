"""Decode, normalise and validate a raw Dyson MQTT payload.

Status topics use inconsistent property naming (``mode-reason``, ``product
state``...), so their keys are normalised to camelCase before validation.
Payloads received on the command topic are echoes of commands and keep their
original keys.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import BaseModel, ValidationError

from dyson_mqtt.exceptions import MessageDecodeError, MessageStructureError, UnknownMessageKindError
from dyson_mqtt.logging_abstraction import get_logger
from dyson_mqtt.messages import DysonEnvelope, DysonMsg, MessageRegistry

__all__ = ["normalise_keys", "parse_message", "validation_errors"]

logger = get_logger(__name__)

_KEY_SEPARATOR_RE = re.compile(r"[-\s]([a-z])")


def kebab_to_camel(key: str) -> str:
    """Convert kebab-case or 'space case' to camelCase (``mode-reason`` -> ``modeReason``)."""
    return _KEY_SEPARATOR_RE.sub(lambda m: m.group(1).upper(), key)


def normalise_keys(value: Any) -> Any:
    """Recursively convert every mapping key with :func:`kebab_to_camel`."""
    if isinstance(value, list):
        return [normalise_keys(item) for item in value]
    if isinstance(value, dict):
        return {kebab_to_camel(str(key)): normalise_keys(item) for key, item in value.items()}
    return value


def _log_validation(level: int, topic: str, payload: object, errors: list[str] | None = None) -> None:
    logger.log(level, "MQTT topic '%s':", topic)
    for line in errors or ():
        logger.log(level, "    %s", line)
    if isinstance(payload, str):
        payload_text = payload
    else:
        payload_text = json.dumps(payload, indent=2, default=str)
    for line in payload_text.splitlines():
        logger.info("    %s", line)


def validation_errors(exc: ValidationError) -> list[str]:
    """Flatten a pydantic error into ``location: message`` lines."""
    lines: list[str] = []
    for error in exc.errors(include_url=False):
        location = ".".join(str(part) for part in error["loc"]) or "(root)"
        lines.append(f"{location}: {error['msg']}")
    return lines


def _extra_properties(model: BaseModel, path: str) -> list[str]:
    extras = [f"{path}.{key}" for key in (model.model_extra or {})]
    for name, value in model:
        items = value if isinstance(value, list | tuple) else [value]
        for index, item in enumerate(items):
            if isinstance(item, BaseModel):
                suffix = f"[{index}]" if items is value else ""
                extras.extend(_extra_properties(item, f"{path}.{name}{suffix}"))
    return extras


def parse_message(registry: MessageRegistry, topic: str, normalise: bool, payload: bytes | str) -> DysonMsg:
    """Turn a raw payload into the typed message for its ``msg`` kind.

    Args:
        registry: Message kinds understood by the device family
        topic: Topic the payload was received on (for diagnostics)
        normalise: Normalise property names (False for command topic echoes)
        payload: Raw MQTT payload

    Raises:
        MessageDecodeError: The payload is not JSON
        MessageStructureError: The payload does not match the envelope, or the shape of its kind
        UnknownMessageKindError: The ``msg`` property names no known kind

    """
    text = payload.decode(errors="replace") if isinstance(payload, bytes) else payload
    try:
        parsed: Any = json.loads(text)
    except json.JSONDecodeError as exc:
        _log_validation(logging.ERROR, topic, text)
        error_msg = f"Failed to parse Dyson MQTT message as JSON: {exc}"
        raise MessageDecodeError(error_msg, topic) from exc
    if normalise:
        parsed = normalise_keys(parsed)

    # General form common to all messages
    if not isinstance(parsed, dict):
        tree = ["DysonMsg: is not an object"]
        _log_validation(logging.ERROR, topic, parsed, tree)
        raise MessageStructureError("Unexpected structure of Dyson MQTT message", topic, tree)
    try:
        envelope = DysonEnvelope.model_validate(parsed)
    except ValidationError as exc:
        tree = [f"DysonMsg.{line}" for line in validation_errors(exc)]
        _log_validation(logging.ERROR, topic, parsed, tree)
        raise MessageStructureError("Unexpected structure of Dyson MQTT message", topic, tree) from exc

    # Shape declared for this kind
    model = registry.get(envelope.msg)
    if model is None:
        _log_validation(logging.ERROR, topic, parsed)
        raise UnknownMessageKindError(envelope.msg, topic)
    try:
        msg = model.model_validate(parsed)
    except ValidationError as exc:
        tree = [f"{model.__name__}.{line}" for line in validation_errors(exc)]
        _log_validation(logging.ERROR, topic, parsed, tree)
        raise MessageStructureError("Unexpected structure of Dyson MQTT message", topic, tree) from exc

    # Unexpected properties are reported but do not prevent processing
    extras = _extra_properties(msg, model.__name__)
    if extras:
        _log_validation(logging.WARNING, topic, parsed, [f"{path} is not expected" for path in extras])
    return msg
