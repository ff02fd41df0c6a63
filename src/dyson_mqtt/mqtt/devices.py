"""Coordinators for the two Dyson device families.

Both request the device's current state whenever subscriptions are
(re-)established, and mark themselves initialised once the messages carrying
the initial state have been received.
"""

from __future__ import annotations

from typing import Literal

from dyson_mqtt.config import DeviceConfig, MqttSettings
from dyson_mqtt.events import try_listener
from dyson_mqtt.logging_abstraction import get_logger
from dyson_mqtt.messages import AIR_MESSAGES, ROBOT_MESSAGES, DysonMsg, ModeReason
from dyson_mqtt.structs import MqttEvent, MqttTopics
from dyson_mqtt.transport import MqttTransport

from .coordinator import DysonMqtt, DysonMqttConfig

__all__ = [
    "DYSON_MQTT_CONFIG_360",
    "DYSON_MQTT_CONFIG_AIR",
    "DysonMqtt360",
    "DysonMqttAir",
    "RobotAction",
]

logger = get_logger(__name__)

DYSON_MQTT_CONFIG_360 = DysonMqttConfig(
    topics=MqttTopics(
        command="@/@/command",
        subscribe=("@/@/status",),
        other=("@/initialconnection/credentials", "@/initialconnection/status"),
    ),
    messages=ROBOT_MESSAGES,
)

DYSON_MQTT_CONFIG_AIR = DysonMqttConfig(
    topics=MqttTopics(
        command="@/@/command",
        subscribe=("@/@/status/connection", "@/@/status/current", "@/@/status/faults"),
    ),
    messages=AIR_MESSAGES,
)

RobotAction = Literal["START", "PAUSE", "RESUME", "ABORT"]


class DysonMqtt360(DysonMqtt):
    """Robot vacuum (360 Eye, 360 Heurist, 360 Vis Nav)."""

    def __init__(
        self,
        device: DeviceConfig,
        settings: MqttSettings | None = None,
        transport: MqttTransport | None = None,
    ) -> None:
        super().__init__(device, DYSON_MQTT_CONFIG_360, settings, transport)
        _ = self.events.on(MqttEvent.SUBSCRIBED, try_listener(self.events, self._request_state))
        _ = self.events.on(MqttEvent.MESSAGE, try_listener(self.events, self._check_initialised))

    async def _request_state(self) -> None:
        await self.publish("REQUEST-CURRENT-STATE")

    def _check_initialised(self, msg: DysonMsg) -> None:
        # Either state message carries the complete robot state
        if msg.msg in ("CURRENT-STATE", "STATE-CHANGE"):
            self.update_initialised()

    async def command_action(self, action: RobotAction) -> None:
        """Start, pause, resume or abort cleaning."""
        params: dict[str, str] = {"mode-reason": ModeReason.LOCAL_APP}
        if action == "START":
            params["fullCleanType"] = "immediate"
        await self.publish(action, params)

    async def command_power(self, power_mode: str) -> None:
        """Set the default vacuum power mode."""
        await self.publish(
            "STATE-SET",
            {"mode-reason": ModeReason.LOCAL_APP, "data": {"defaultVacuumPowerMode": power_mode}},
        )


class DysonMqttAir(DysonMqtt):
    """Air treatment machine (purifiers, humidifiers and heaters)."""

    INITIALISE_MSGS: frozenset[str] = frozenset({"HELLO", "CURRENT-STATE", "ENVIRONMENTAL-CURRENT-SENSOR-DATA"})

    def __init__(
        self,
        device: DeviceConfig,
        settings: MqttSettings | None = None,
        transport: MqttTransport | None = None,
    ) -> None:
        super().__init__(device, DYSON_MQTT_CONFIG_AIR, settings, transport)
        self.initialise_pending: set[str] = set(self.INITIALISE_MSGS)
        _ = self.events.on(MqttEvent.SUBSCRIBED, try_listener(self.events, self._request_state))
        _ = self.events.on(MqttEvent.MESSAGE, try_listener(self.events, self._check_initialised))

    async def _request_state(self) -> None:
        await self.publish("REQUEST-CURRENT-STATE")
        await self.publish("REQUEST-PRODUCT-ENVIRONMENT-CURRENT-SENSOR-DATA")

    def _check_initialised(self, msg: DysonMsg) -> None:
        self.initialise_pending.discard(msg.msg)
        if not self.initialise_pending:
            self.update_initialised()
        else:
            logger.debug("%s Awaiting %s", self.lp, ", ".join(sorted(self.initialise_pending)))
