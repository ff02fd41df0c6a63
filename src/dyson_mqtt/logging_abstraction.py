"""Logging abstraction layer for dyson-mqtt.

Provides dual-format logging (JSON + human-readable) with correlation tracking
and structured context. Handlers are attached once to the package logger and
every module logger propagates to it, so per-device coordinators can share one
output configuration.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import cast

from typing_extensions import override

__all__ = [
    "DysonLogger",
    "HumanReadableFormatter",
    "JSONFormatter",
    "get_logger",
]


def _correlation_id() -> str | None:
    # Import here to avoid circular dependency
    from dyson_mqtt.const import DYSON_MQTT_LOG_CORRELATION_ENABLED  # noqa: PLC0415
    from dyson_mqtt.correlation import get_correlation_id  # noqa: PLC0415

    if not DYSON_MQTT_LOG_CORRELATION_ENABLED:
        return None
    return get_correlation_id()


class JSONFormatter(logging.Formatter):
    """Formatter that outputs one JSON object per log record."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, object] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
            "correlation_id": _correlation_id(),
        }

        extra_data = getattr(record, "extra_data", None)
        if isinstance(extra_data, Mapping) and extra_data:
            context_map = cast("Mapping[str, object]", extra_data)
            log_data["context"] = dict(context_map)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            log_data["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Formatter that outputs human-readable logs with short correlation IDs."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s [%(module)s:%(lineno)d] %(correlation_id)s > %(message)s",
            datefmt="%m/%d/%y %H:%M:%S",
        )

    @override
    def format(self, record: logging.LogRecord) -> str:
        correlation_id = _correlation_id()
        record.correlation_id = f"[{correlation_id[:8]}]" if correlation_id else "[--------]"

        formatted = super().format(record)

        extra_data = getattr(record, "extra_data", None)
        if isinstance(extra_data, Mapping) and extra_data:
            context_map = cast("Mapping[str, object]", extra_data)
            context_str = " | ".join(f"{k}={v}" for k, v in context_map.items())
            formatted = f"{formatted} | {context_str}"

        return formatted


def _configure_package_logger(
    log_format: str,
    json_file: str | Path | None,
    human_output: str | None,
) -> logging.Logger:
    """Attach handlers to the package logger on first use."""
    from dyson_mqtt.const import DYSON_MQTT_DEBUG, DYSON_MQTT_LOG_NAME  # noqa: PLC0415

    package_logger = logging.getLogger(DYSON_MQTT_LOG_NAME)
    if package_logger.handlers:
        return package_logger

    package_logger.setLevel(logging.DEBUG if DYSON_MQTT_DEBUG else logging.INFO)
    handler_level = package_logger.level

    if log_format in ("json", "both") and json_file:
        try:
            json_path = Path(json_file)
            json_path.parent.mkdir(parents=True, exist_ok=True)
            json_handler = logging.FileHandler(json_path, mode="a")
            json_handler.setFormatter(JSONFormatter())
            json_handler.setLevel(handler_level)
            package_logger.addHandler(json_handler)
        except (OSError, PermissionError) as e:
            print(f"Warning: Failed to create JSON log file {json_file}: {e}", file=sys.stderr)

    if log_format in ("human", "both"):
        normalized_output = human_output or "stdout"
        if normalized_output == "stdout":
            human_handler: logging.Handler = logging.StreamHandler(sys.stdout)
        elif normalized_output == "stderr":
            human_handler = logging.StreamHandler(sys.stderr)
        else:
            try:
                human_path = Path(normalized_output)
                human_path.parent.mkdir(parents=True, exist_ok=True)
                human_handler = logging.FileHandler(human_path, mode="a")
            except (OSError, PermissionError) as e:
                print(f"Warning: Failed to create human log file {human_output}: {e}", file=sys.stderr)
                human_handler = logging.StreamHandler(sys.stdout)

        human_handler.setFormatter(HumanReadableFormatter())
        human_handler.setLevel(handler_level)
        package_logger.addHandler(human_handler)

    return package_logger


class DysonLogger:
    """Logger abstraction providing structured context on top of stdlib logging.

    Module loggers are children of the ``dyson_mqtt`` package logger, which owns
    the output handlers. Every method accepts ``%``-style arguments and an
    optional ``extra`` mapping that is rendered as ``key=value`` pairs (human
    output) or a ``context`` object (JSON output).
    """

    def __init__(self, name: str) -> None:
        self.name: str = name
        self.logger: logging.Logger = logging.getLogger(name)

    def _log(self, level: int, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        extra_payload: Mapping[str, object] | None = None
        if extra:
            extra_payload = {"extra_data": dict(extra)}
        self.logger.log(level, msg, *args, extra=extra_payload, stacklevel=3)

    def debug(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.DEBUG, msg, *args, extra=extra)

    def info(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.INFO, msg, *args, extra=extra)

    def warning(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.WARNING, msg, *args, extra=extra)

    def error(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.ERROR, msg, *args, extra=extra)

    def critical(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.CRITICAL, msg, *args, extra=extra)

    def exception(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        """Log at ERROR level with the active exception's traceback."""
        log_extra = {"extra_data": dict(extra)} if extra else None
        self.logger.exception(msg, *args, extra=log_extra, stacklevel=2)

    def log(self, level: int, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(level, msg, *args, extra=extra)

    def is_enabled_for(self, level: int) -> bool:
        return self.logger.isEnabledFor(level)

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)


def get_logger(
    name: str,
    log_format: str | None = None,
    json_file: str | Path | None = None,
    human_output: str | None = None,
) -> DysonLogger:
    """Get a DysonLogger, configuring the package output on first use.

    Args:
        name: Logger name (normally ``__name__`` of a ``dyson_mqtt`` module)
        log_format: Override default format ("json", "human", or "both")
        json_file: Override default JSON output file
        human_output: Override default human-readable output

    Returns:
        DysonLogger instance

    """
    from dyson_mqtt.const import (  # noqa: PLC0415
        DYSON_MQTT_LOG_FORMAT,
        DYSON_MQTT_LOG_HUMAN_OUTPUT,
        DYSON_MQTT_LOG_JSON_FILE,
    )

    _ = _configure_package_logger(
        log_format or DYSON_MQTT_LOG_FORMAT,
        json_file or DYSON_MQTT_LOG_JSON_FILE or None,
        human_output or DYSON_MQTT_LOG_HUMAN_OUTPUT,
    )
    return DysonLogger(name)
