"""Per-device MQTT coordinator: reachability, typed receive and publish, initialisation barrier.

:class:`DysonMqtt` composes the connection manager, subscription manager,
message normaliser and message filter for one device. It is the only object
the rest of an application needs; its ``events`` emitter carries:

- ``subscribed``: subscriptions (re-)established
- ``message(msg)``: a typed, validated, non-duplicate message on a subscribed topic
- ``status``: reachability or initialisation changed, or a new message arrived
- ``error(exc)``: any failure while handling an event for this device

Reachability has hysteresis: a transport close, or the device announcing its
departure, starts a grace timer for that reason, and the device is only
reported unreachable if the timer expires before the next subscription.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any, Self

from pydantic import ValidationError

from dyson_mqtt import metrics
from dyson_mqtt.config import DeviceConfig, MqttSettings
from dyson_mqtt.const import (
    ANSI_MESSAGE,
    ANSI_PUBLISH,
    ANSI_RECEIVE,
    ANSI_RESET,
    ANSI_STRIKE,
    ANSI_STRIKE_RESET,
    ANSI_TIME,
    MQTT_QOS_AT_LEAST_ONCE,
    UNREACHABLE_MESSAGES,
)
from dyson_mqtt.correlation import correlation_context
from dyson_mqtt.events import AsyncEventEmitter, try_listener
from dyson_mqtt.exceptions import (
    CoordinatorStoppedError,
    MessageStructureError,
    MessageValidationError,
    UnknownMessageKindError,
)
from dyson_mqtt.logging_abstraction import get_logger
from dyson_mqtt.messages import DysonMsg, MessageRegistry
from dyson_mqtt.structs import (
    FilterResult,
    MqttEvent,
    MqttTopics,
    ReachabilityReason,
    ReachabilityState,
    ReachabilityStatus,
    TopicStatus,
)
from dyson_mqtt.transport import MqttTransport, create_transport
from dyson_mqtt.utils import iso_timestamp

from .connection import ConnectionManager
from .filter import MessageFilter
from .parse import parse_message, validation_errors
from .subscribe import SubscriptionManager

__all__ = [
    "DysonMqtt",
    "DysonMqttConfig",
    "ReachabilityState",
    "ReachabilityStatus",
]

logger = get_logger(__name__)


@dataclass(frozen=True)
class DysonMqttConfig:
    """Topics and message kinds of one device family."""

    topics: MqttTopics
    messages: MessageRegistry


class DysonMqtt:
    """MQTT coordinator for a single Dyson device."""

    def __init__(
        self,
        device: DeviceConfig,
        mqtt_config: DysonMqttConfig,
        settings: MqttSettings | None = None,
        transport: MqttTransport | None = None,
    ) -> None:
        """Create the coordinator and its collaborators; nothing connects until :meth:`start`.

        Args:
            device: Identity and credentials of the device
            mqtt_config: Topics and message kinds of the device family
            settings: MQTT behaviour; defaults from the environment
            transport: Transport to use instead of the one selected by the device configuration

        """
        self.device: DeviceConfig = device
        self.mqtt_config: DysonMqttConfig = mqtt_config
        self.settings: MqttSettings = settings or MqttSettings()
        self.serial_number: str = device.serial_number
        self.lp: str = f"{device.name}:mqtt:"
        self.events: AsyncEventEmitter = AsyncEventEmitter(f"{device.name}:mqtt")
        self.status: ReachabilityStatus = ReachabilityStatus()
        self._stopped: bool = False
        # Down reasons; an expired timer keeps its reason until it is cleared
        self._down_timers: dict[ReachabilityReason, asyncio.Task[None]] = {}

        self.transport: MqttTransport = transport or create_transport(device, self.settings)
        _ = self.transport.events.on(
            MqttEvent.CLOSE,
            try_listener(self.events, lambda: self.update_reachable(ReachabilityReason.TRANSPORT, False)),
        )

        self.connection: ConnectionManager = ConnectionManager(self.transport, self.settings, self.serial_number)
        _ = self.connection.events.on(MqttEvent.ERROR, self._forward_error)

        self.subscription: SubscriptionManager = SubscriptionManager(
            self.transport,
            mqtt_config.topics,
            device.root_topic,
            device.serial_number,
            self.settings,
        )
        _ = self.subscription.events.on(MqttEvent.ERROR, self._forward_error)
        _ = self.subscription.events.on(MqttEvent.SUBSCRIBED, try_listener(self.events, self._on_subscribed))

        self.filter: MessageFilter = MessageFilter()
        _ = self.transport.events.on(MqttEvent.MESSAGE, try_listener(self.events, self._on_message))

    async def __aenter__(self) -> Self:
        self.start()
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.stop()

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def state(self) -> ReachabilityState:
        """Reachability including whether a grace period is running."""
        if not self.status.reachable:
            return ReachabilityState.UNREACHABLE
        if any(not task.done() for task in self._down_timers.values()):
            return ReachabilityState.PENDING_UNREACHABLE
        return ReachabilityState.REACHABLE

    def start(self) -> None:
        """Begin connecting to the device."""
        if self._stopped:
            raise CoordinatorStoppedError(self.device.name)
        logger.info("%s Starting MQTT coordinator for %s", self.lp, self.serial_number)
        self.connection.start()

    async def stop(self) -> None:
        """Cancel timers, disconnect and wait for in-flight event handling (idempotent).

        Any :meth:`wait_until_initialised` caller is woken with
        :class:`~dyson_mqtt.exceptions.CoordinatorStoppedError`.
        """
        lp = f"{self.lp}stop:"
        if self._stopped:
            return
        self._stopped = True
        logger.info("%s Stopping MQTT coordinator", lp)

        timers = list(self._down_timers.values())
        self._down_timers.clear()
        for task in timers:
            _ = task.cancel()
        for task in timers:
            with contextlib.suppress(asyncio.CancelledError):
                await task

        await self.connection.stop()
        await self.subscription.events.drain()
        await self.events.drain()
        if self.status.reachable:
            self._set_status(reachable=False)
        else:
            _ = self.events.emit(MqttEvent.STATUS)

    def update_reachable(self, reason: ReachabilityReason, reachable: bool) -> None:
        """Clear or raise one reason for the device being down.

        Raising a reason while reachable starts its grace timer (unless one is
        already running). The device becomes reachable again once no reason
        remains.
        """
        if reachable:
            task = self._down_timers.pop(reason, None)
            if task is not None:
                _ = task.cancel()
            if not self.status.reachable and not self._down_timers:
                self._set_status(reachable=True)
        elif reason not in self._down_timers and self.status.reachable and not self._stopped:
            logger.debug("%s Starting down timer for '%s'", self.lp, reason)
            self._down_timers[reason] = asyncio.create_task(
                self._down_timer(reason),
                name=f"{self.serial_number} down timer ({reason})",
            )

    def update_initialised(self, initialised: bool = True) -> None:
        """Record whether the owner has observed all of the initial state it needs."""
        if self._stopped or self.status.initialised == initialised:
            return
        if initialised:
            logger.info("%s MQTT client initialisation complete", self.lp)
        else:
            logger.info("%s MQTT client initialisation reset", self.lp)
        self._set_status(initialised=initialised)

    async def wait_until_initialised(self, timeout: float | None = None) -> None:
        """Wait until the device is both reachable and initialised.

        Raises:
            TimeoutError: If ``timeout`` seconds elapse first
            CoordinatorStoppedError: If the coordinator is (or becomes) stopped

        """
        async with asyncio.timeout(timeout):
            while True:
                if self._stopped:
                    raise CoordinatorStoppedError(self.device.name)
                if self.status.ready:
                    return
                _ = await self.events.wait_for(MqttEvent.STATUS)

    async def publish(self, kind: str, params: Mapping[str, Any] | None = None) -> None:
        """Publish a command, stamped with the current time, to the command topic.

        ``params`` holds the wire-format properties of the command other than
        ``msg`` and ``time``; those two keys are ignored if present. It is not modified.

        Raises:
            CoordinatorStoppedError: After :meth:`stop`
            UnknownMessageKindError: If ``kind`` is not a command of this device family
            MessageStructureError: If ``params`` do not match the command
            MqttTransportError: If the transport could not publish

        """
        if self._stopped:
            raise CoordinatorStoppedError(self.device.name)
        topic = self.subscription.command_topic
        registry = self.mqtt_config.messages
        if kind not in registry.commands():
            raise UnknownMessageKindError(kind, topic)

        properties = {key: value for key, value in (params or {}).items() if key not in ("msg", "time")}
        full_msg: dict[str, Any] = {"msg": kind, **properties, "time": iso_timestamp()}
        try:
            _ = registry.validate(full_msg)
        except ValidationError as exc:
            errors = [f"{exc.title}.{line}" for line in validation_errors(exc)]
            for line in errors:
                logger.error("%s     %s", self.lp, line)
            raise MessageStructureError(f"Invalid '{kind}' command", topic, errors) from exc

        self._log_payload("publish", topic, full_msg)
        await self.transport.publish(topic, json.dumps(full_msg), qos=MQTT_QOS_AT_LEAST_ONCE, retain=False)
        metrics.record_message_published(self.serial_number, kind)

    def _set_status(self, **changes: bool) -> None:
        status = replace(self.status, **changes)
        if status == self.status:
            return
        reachable_changed = status.reachable != self.status.reachable
        self.status = status
        if reachable_changed:
            metrics.record_reachable(self.serial_number, status.reachable)
        _ = self.events.emit(MqttEvent.STATUS)

    async def _down_timer(self, reason: ReachabilityReason) -> None:
        await asyncio.sleep(self.settings.min_down_time)
        if self.status.reachable and not self._stopped:
            logger.error("%s Unreachable (%s)", self.lp, reason)
            self._set_status(reachable=False)

    def _forward_error(self, exc: Exception) -> None:
        _ = self.events.emit(MqttEvent.ERROR, exc)

    def _on_subscribed(self) -> None:
        if self._stopped:
            return
        for task in self._down_timers.values():
            _ = task.cancel()
        self._down_timers.clear()
        if not self.status.reachable:
            self._set_status(reachable=True)
        _ = self.events.emit(MqttEvent.SUBSCRIBED)

    def _on_message(self, topic: str, payload: bytes) -> None:
        with correlation_context():
            topic_status = self.subscription.check_topic(topic)
            metrics.record_message_received(self.serial_number, topic_status)
            try:
                msg = parse_message(
                    self.mqtt_config.messages,
                    topic,
                    topic_status is not TopicStatus.COMMAND,
                    payload,
                )
            except MessageValidationError as exc:
                metrics.record_message_invalid(self.serial_number, type(exc).__name__)
                raise

            result = self.filter.filter(msg)
            if result is not None:
                metrics.record_message_filtered(self.serial_number, result)
            self._log_payload("receive", topic, msg, result)

            if topic_status is not TopicStatus.SUBSCRIBED or result is FilterResult.REORDERED:
                return
            # A resent message still shows whether the device is present
            self.update_reachable(ReachabilityReason.MESSAGE, msg.msg not in UNREACHABLE_MESSAGES)
            if result is None:
                _ = self.events.emit(MqttEvent.MESSAGE, msg)
                _ = self.events.emit(MqttEvent.STATUS)

    def _log_payload(
        self,
        direction: str,
        topic: str,
        payload: DysonMsg | Mapping[str, Any],
        result: FilterResult | None = None,
    ) -> None:
        if not (self.settings.log_payloads or self.settings.log_payloads_json):
            return
        wire = payload.to_wire() if isinstance(payload, DysonMsg) else dict(payload)
        suffix = f" ({result})" if result else ""

        if self.settings.log_payloads_json:
            logger.debug("%s MQTT %s: %s topic '%s'%s", self.lp, direction, json.dumps(wire), topic, suffix)
            return

        # msg and time first, then the other properties sorted by key
        colour = ANSI_PUBLISH if direction == "publish" else ANSI_RECEIVE
        other = {key: value for key, value in wire.items() if key not in ("msg", "time")}
        properties = [
            f"msg: {colour}'{wire.get('msg')}'{ANSI_MESSAGE}",
            f"time: {ANSI_TIME}'{wire.get('time')}'{ANSI_MESSAGE}",
        ]
        if result is FilterResult.DUPLICATE:
            properties.append("...")
        else:
            properties.extend(f"{key}: {json.dumps(value)}" for key, value in sorted(other.items()))
        summary = f"{ANSI_MESSAGE}{{ {', '.join(properties)} }}{ANSI_RESET}"
        if result:
            logger.debug("%s MQTT %s: %s%s%s%s", self.lp, direction, ANSI_STRIKE, summary, ANSI_STRIKE_RESET, suffix)
        else:
            logger.debug("%s MQTT %s: %s topic '%s'", self.lp, direction, summary, topic)
