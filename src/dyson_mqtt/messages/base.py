"""Message envelope shared by every Dyson MQTT payload, and the per-family registry.

Every payload is a JSON object whose ``msg`` property names its kind (the
discriminant) and whose ``time`` property is an ISO-8601 timestamp. Each kind
is a :class:`DysonMsg` subclass with ``msg`` declared as a single ``Literal``;
a :class:`MessageRegistry` is the closed set of kinds for one device family.

Python attribute names are snake_case; the wire names (camelCase after key
normalisation, or the raw ``mode-reason`` form used by commands) are aliases.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from datetime import datetime
from enum import StrEnum
from typing import Any, Literal, get_args, get_origin

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from dyson_mqtt.utils import parse_iso_timestamp

__all__ = [
    "CommandMsg",
    "DysonEnvelope",
    "DysonMsg",
    "MessageRegistry",
    "ModeReason",
    "StateReason",
]


class ModeReason(StrEnum):
    UNKNOWN = ""
    LOCAL_APP = "LAPP"
    LOCAL_SCHEDULE = "LSCH"
    REMOTE_APP = "RAPP"
    PRECONDITIONING = "PRC"
    PHYSICAL_USER_INTERACTION = "PUI"
    NONE = "NONE"


class StateReason(StrEnum):
    ENVIRONMENT = "ENV"
    FLT = "FLT"
    MODE = "MODE"
    NONE = "NONE"


def _check_timestamp(value: str | None) -> str | None:
    if value is not None:
        try:
            _ = parse_iso_timestamp(value)
        except ValueError as exc:
            error_msg = f"'{value}' is not an ISO-8601 timestamp"
            raise ValueError(error_msg) from exc
    return value


class DysonEnvelope(BaseModel):
    """The general form every payload must have before its kind is considered."""

    model_config = ConfigDict(extra="allow", frozen=True)

    msg: str
    time: str | None = None

    @field_validator("time")
    @classmethod
    def check_time(cls, value: str | None) -> str | None:
        return _check_timestamp(value)


class DysonMsg(BaseModel):
    """Base for all typed Dyson MQTT messages.

    Unknown properties are retained (and reported as warnings by the parser)
    so that newer firmware does not cause messages to be dropped.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        extra="allow",
        frozen=True,
        populate_by_name=True,
    )

    msg: str
    time: str

    @field_validator("time")
    @classmethod
    def check_time(cls, value: str | None) -> str | None:
        return _check_timestamp(value)

    @classmethod
    def kind(cls) -> str:
        """The ``msg`` value this model accepts."""
        annotation = cls.model_fields["msg"].annotation
        if get_origin(annotation) is not Literal:
            error_msg = f"{cls.__name__}.msg must be a single Literal"
            raise TypeError(error_msg)
        (value,) = get_args(annotation)
        return str(value)

    @property
    def timestamp(self) -> datetime | None:
        time = self.time
        return parse_iso_timestamp(time) if time else None

    def content(self) -> dict[str, Any]:
        """Wire representation excluding the timestamp, used for duplicate detection."""
        return self.model_dump(by_alias=True, exclude={"time"})

    def to_wire(self) -> dict[str, Any]:
        """Wire representation with ``msg`` first and ``time`` last."""
        dumped = self.model_dump(mode="json", by_alias=True, exclude_unset=True)
        wire: dict[str, Any] = {"msg": dumped.pop("msg")}
        time = dumped.pop("time", None)
        wire.update(dumped)
        if time is not None:
            wire["time"] = time
        return wire


class CommandMsg(DysonMsg):
    """A message published on the command topic (never key-normalised)."""

    mode_reason: ModeReason | None = Field(default=None, alias="mode-reason")


class MessageRegistry:
    """Closed set of message kinds understood for one device family."""

    def __init__(self, name: str, models: Iterable[type[DysonMsg]]) -> None:
        self.name: str = name
        self._models: dict[str, type[DysonMsg]] = {}
        for model in models:
            kind = model.kind()
            if kind in self._models:
                error_msg = f"{name}: duplicate message kind '{kind}'"
                raise ValueError(error_msg)
            self._models[kind] = model

    def __contains__(self, kind: object) -> bool:
        return kind in self._models

    def __iter__(self) -> Iterator[str]:
        return iter(self._models)

    def __len__(self) -> int:
        return len(self._models)

    def get(self, kind: str) -> type[DysonMsg] | None:
        return self._models.get(kind)

    def commands(self) -> list[str]:
        """Kinds that may be published."""
        return [kind for kind, model in self._models.items() if issubclass(model, CommandMsg)]

    def validate(self, payload: Mapping[str, Any]) -> DysonMsg:
        """Validate a payload against the model for its ``msg`` kind.

        Raises:
            KeyError: If the kind is not in this registry
            pydantic.ValidationError: If the payload does not match the model

        """
        model = self._models[str(payload.get("msg"))]
        return model.model_validate(payload)
