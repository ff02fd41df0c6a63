"""Messages exchanged with Dyson air treatment machines (purifiers, heaters, humidifiers).

Product state, sensor data and fault maps use the devices' four letter codes
as keys (``fpwr``, ``pm25``, ``amf1``...) and are kept as plain mappings.
"""

from __future__ import annotations

from typing import Any, Literal

from dyson_mqtt.messages.base import CommandMsg, DysonMsg, MessageRegistry, ModeReason, StateReason

__all__ = [
    "AIR_MESSAGES",
    "AirCurrentFaults",
    "AirCurrentState",
    "AirEnvironmentalAndUsageData",
    "AirEnvironmentalCurrentSensorData",
    "AirFaultsChange",
    "AirGoneAway",
    "AirGoodbye",
    "AirHello",
    "AirImBack",
    "AirLocation",
    "AirRequestCurrentFaults",
    "AirRequestCurrentState",
    "AirRequestProductEnvironmentCurrentSensorData",
    "AirScheduleSet",
    "AirScheduleUpdated",
    "AirStateChange",
    "AirStateSet",
]

FaultStatus = Literal["OK", "FAIL"]
FaultChange = tuple[FaultStatus, FaultStatus]


# <type>/<sn>/status/connection


class AirHello(DysonMsg):
    msg: Literal["HELLO"]
    model: str | None = None
    version: str
    protocol: str
    serial_number: str
    mac_address: str
    module_hardware: str | None = None
    module_bootloader: str | None = None
    module_software: str | None = None
    module_nwp: str | None = None
    product_hardware: str | None = None
    product_bootloader: str | None = None
    product_software: str | None = None
    reset_source: Literal["PWUP", "HIB"]


class AirGoneAway(DysonMsg):
    """The only status message without a timestamp."""

    msg: Literal["GONE-AWAY"]
    time: str | None = None


class AirGoodbye(DysonMsg):
    msg: Literal["GOODBYE"]
    reason: str


class AirImBack(DysonMsg):
    msg: Literal["IM-BACK"]
    reason: Literal["WIFI-RECONNECT", "BROKER-RECONNECT"] | None = None
    version: str | None = None


# <type>/<sn>/status/current


class AirCurrentState(DysonMsg):
    msg: Literal["CURRENT-STATE"]
    mode_reason: ModeReason
    state_reason: StateReason
    dial: str | None = None
    rssi: str | None = None
    channel: str | None = None
    fghp: str | None = None
    fqhp: str | None = None
    product_state: dict[str, str]
    scheduler: dict[str, Any]


class AirStateChange(DysonMsg):
    msg: Literal["STATE-CHANGE"]
    mode_reason: ModeReason
    state_reason: StateReason
    product_state: dict[str, tuple[str, str]]
    scheduler: dict[str, Any]


class AirEnvironmentalCurrentSensorData(DysonMsg):
    msg: Literal["ENVIRONMENTAL-CURRENT-SENSOR-DATA"]
    data: dict[str, str]


class AirEnvironmentalAndUsageData(DysonMsg):
    msg: Literal["ENVIRONMENTAL-AND-USAGE-DATA"]
    data: dict[str, Any]


class AirLocation(DysonMsg):
    msg: Literal["LOCATION"]
    apos: str


# <type>/<sn>/status/faults


class AirCurrentFaults(DysonMsg):
    msg: Literal["CURRENT-FAULTS"]
    product_errors: dict[str, FaultStatus]
    product_warnings: dict[str, FaultStatus]
    module_errors: dict[str, FaultStatus]
    module_warnings: dict[str, FaultStatus]


class AirFaultsChange(DysonMsg):
    msg: Literal["FAULTS-CHANGE"]
    product_errors: dict[str, FaultChange]
    product_warnings: dict[str, FaultChange]
    module_errors: dict[str, FaultChange]
    module_warnings: dict[str, FaultChange]


# <type>/<sn>/status/scheduler


class AirScheduleUpdated(DysonMsg):
    msg: Literal["SCHEDULE-UPDATED"]
    version: str


# <type>/<sn>/command


class AirRequestCurrentFaults(CommandMsg):
    msg: Literal["REQUEST-CURRENT-FAULTS"]


class AirRequestCurrentState(CommandMsg):
    msg: Literal["REQUEST-CURRENT-STATE"]


class AirRequestProductEnvironmentCurrentSensorData(CommandMsg):
    msg: Literal["REQUEST-PRODUCT-ENVIRONMENT-CURRENT-SENSOR-DATA"]


class AirStateSet(CommandMsg):
    msg: Literal["STATE-SET"]
    data: dict[str, str]


class AirScheduleSet(CommandMsg):
    msg: Literal["SCHEDULE-SET"]
    version: str


AIR_MESSAGES = MessageRegistry(
    "air treatment",
    [
        AirHello,
        AirGoneAway,
        AirGoodbye,
        AirImBack,
        AirCurrentState,
        AirStateChange,
        AirEnvironmentalCurrentSensorData,
        AirEnvironmentalAndUsageData,
        AirLocation,
        AirCurrentFaults,
        AirFaultsChange,
        AirScheduleUpdated,
        AirRequestCurrentFaults,
        AirRequestCurrentState,
        AirRequestProductEnvironmentCurrentSensorData,
        AirStateSet,
        AirScheduleSet,
    ],
)
