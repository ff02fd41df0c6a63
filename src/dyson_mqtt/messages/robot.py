"""Messages exchanged with Dyson 360 robot vacuums.

Status topic ``<type>/<sn>/status``; commands on ``<type>/<sn>/command``;
the initial connection topics carry provisioning messages.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from dyson_mqtt.messages.base import CommandMsg, DysonMsg, MessageRegistry, ModeReason

__all__ = [
    "ROBOT_MESSAGES",
    "RobotAbort",
    "RobotActiveFault",
    "RobotConnectionStatus",
    "RobotCurrentState",
    "RobotDeviceCredentials",
    "RobotGoneAway",
    "RobotGoodbye",
    "RobotHello",
    "RobotImBack",
    "RobotMapData",
    "RobotMapGlobal",
    "RobotMapGrid",
    "RobotPause",
    "RobotRequestCurrentState",
    "RobotResume",
    "RobotStart",
    "RobotStateChange",
    "RobotStateSet",
    "RobotTelemetryData",
]

Position = tuple[float, float]


class RobotActiveFault(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, extra="allow", frozen=True, populate_by_name=True)

    fault_code: str
    next_action_required: str
    present: str
    required_user_action: str


# <type>/initialconnection/credentials


class RobotDeviceCredentials(DysonMsg):
    msg: Literal["DEVICE-CREDENTIALS"]
    time: str | None = None
    serial_number: str
    ap_password_hash: str


# <type>/initialconnection/status


class RobotConnectionStatus(DysonMsg):
    msg: Literal["CONNECTION-STATUS"]
    time: str | None = None
    status: str
    phase: str
    network: str
    request_id: str
    ip: str


# <type>/<sn>/status


class RobotHello(DysonMsg):
    msg: Literal["HELLO"]
    protocol: str
    serial: str
    version: str


class RobotGoodbye(DysonMsg):
    msg: Literal["GOODBYE"]
    reason: str


class RobotGoneAway(DysonMsg):
    """The only status message without a timestamp."""

    msg: Literal["GONE-AWAY"]
    time: str | None = None


class RobotImBack(DysonMsg):
    msg: Literal["IM-BACK"]
    state: str | None = None


class _RobotStateFields(DysonMsg):
    active_faults: list[RobotActiveFault] | None = None
    battery_charge_level: int | None = None
    channel: str | None = None
    clean_duration: int | None = None
    clean_id: str | None = None
    current_cleaning_mode: str | None = None
    current_cleaning_strategy: str | None = None
    current_vacuum_power_mode: str
    default_cleaning_mode: str | None = None
    default_cleaning_strategy: str | None = None
    default_vacuum_power_mode: str | None = None
    faults: dict[str, Any] | None = None
    full_clean_type: str
    global_position: Position | None = None
    rssi: str | None = None
    session_id: str | None = None


class RobotCurrentState(_RobotStateFields):
    msg: Literal["CURRENT-STATE"]
    out_of_box_state: str | None = None
    state: str


class RobotStateChange(_RobotStateFields):
    msg: Literal["STATE-CHANGE"]
    end_of_clean: bool | None = None
    new_active_faults: list[RobotActiveFault] | None = None
    new_out_of_box_state: str | None = None
    newstate: str
    new_zone_id: str | None = None
    old_active_faults: list[RobotActiveFault] | None = None
    old_out_of_box_state: str | None = None
    oldstate: str
    old_zone_id: str | None = None
    persistent_map_id: str | None = None
    traverse_target_id: str | None = None
    zones_definition_version: str | None = None


class RobotMapData(DysonMsg):
    msg: Literal["MAP-DATA"]
    grid_id: str = Field(alias="gridID")
    clean_id: str
    data: dict[str, Any]


class RobotMapGlobal(DysonMsg):
    msg: Literal["MAP-GLOBAL"]
    angle: float
    clean_id: str
    grid_id: str = Field(alias="gridID")
    x: float
    y: float


class RobotMapGrid(DysonMsg):
    msg: Literal["MAP-GRID"]
    anchor: Position
    clean_id: str
    grid_id: str = Field(alias="gridID")
    height: int
    resolution: float
    width: int


class RobotTelemetryData(DysonMsg):
    msg: Literal["TELEMETRY-DATA"]
    field1: str
    field2: str
    field3: str
    field4: str
    id: str


# <type>/<sn>/command


class RobotRequestCurrentState(CommandMsg):
    msg: Literal["REQUEST-CURRENT-STATE"]


class RobotStateSet(CommandMsg):
    msg: Literal["STATE-SET"]
    mode_reason: ModeReason = Field(alias="mode-reason")
    data: dict[str, Any]


class RobotStart(CommandMsg):
    msg: Literal["START"]
    full_clean_type: str
    cleaning_mode: str | None = None
    vacuum_power_mode: str | None = None
    clean_id: str | None = None


class RobotPause(CommandMsg):
    msg: Literal["PAUSE"]
    mode_reason: ModeReason = Field(alias="mode-reason")


class RobotResume(CommandMsg):
    msg: Literal["RESUME"]
    mode_reason: ModeReason = Field(alias="mode-reason")


class RobotAbort(CommandMsg):
    msg: Literal["ABORT"]
    mode_reason: ModeReason = Field(alias="mode-reason")


ROBOT_MESSAGES = MessageRegistry(
    "robot vacuum",
    [
        RobotDeviceCredentials,
        RobotConnectionStatus,
        RobotHello,
        RobotGoodbye,
        RobotGoneAway,
        RobotImBack,
        RobotCurrentState,
        RobotStateChange,
        RobotMapData,
        RobotMapGlobal,
        RobotMapGrid,
        RobotTelemetryData,
        RobotRequestCurrentState,
        RobotStateSet,
        RobotStart,
        RobotPause,
        RobotResume,
        RobotAbort,
    ],
)
