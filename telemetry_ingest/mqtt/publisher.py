"""Command publisher: outbound actuator commands, heartbeats and status."""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

import orjson

from ..errors import InvalidParameter, TransportUnavailable
from ..metrics import COMMANDS_PUBLISHED
from .registry import ComponentRegistry, get_default_registry
from .topics import build_command_topic, build_heartbeat_topic
from .transport import MessageTransport

logger = logging.getLogger(__name__)

ACTUATOR_QOS = 1
HEARTBEAT_QOS = 0
STATUS_QOS = 1

ANGLE_MIN = 0
ANGLE_MAX = 180


def validate_angle(command: Any) -> int:
    """Angular actuators only accept an integer angle in [0, 180]."""
    if isinstance(command, bool):
        raise InvalidParameter(f"Angle must be an integer between {ANGLE_MIN} and {ANGLE_MAX}, got {command!r}")
    try:
        angle = int(str(command).strip())
    except ValueError:
        raise InvalidParameter(
            f"Angle must be an integer between {ANGLE_MIN} and {ANGLE_MAX}, got {command!r}"
        ) from None
    if not ANGLE_MIN <= angle <= ANGLE_MAX:
        raise InvalidParameter(f"Angle must be between {ANGLE_MIN} and {ANGLE_MAX}, got {angle}")
    return angle


class CommandPublisher:
    """Publica comandos hacia los dispositivos.

    No encola ni reintenta: si el transporte está caído, ``send`` falla de
    inmediato con TransportUnavailable y el caller decide.
    """

    def __init__(
        self,
        transport: MessageTransport,
        namespace: str = "farm",
        registry: Optional[ComponentRegistry] = None,
    ):
        self._transport = transport
        self.namespace = namespace
        self.registry = registry or get_default_registry()

    def prepare(self, component_token: str, command: Any) -> str:
        """Returns the wire command; raises InvalidParameter for bad angles."""
        if self.registry.is_angular(component_token):
            return str(validate_angle(command))
        return str(command)

    def send(
        self,
        device_identifier: str,
        component_token: str,
        command: Any,
        parameters: Optional[dict] = None,
    ) -> str:
        """Publishes an actuator command and returns the topic used.

        ``parameters`` are not part of the wire payload; devices only
        receive the command string. They travel in the command log.

        Raises:
            InvalidParameter: angular actuator with a non-integer or out-of-range angle.
            TransportUnavailable: transport disconnected or publish rejected.
        """
        try:
            wire_command = self.prepare(component_token, command)
        except InvalidParameter:
            COMMANDS_PUBLISHED.labels(outcome="rejected").inc()
            raise

        topic = build_command_topic(self.namespace, device_identifier, component_token)
        try:
            self._transport.publish(topic, wire_command, qos=ACTUATOR_QOS, retain=True)
        except TransportUnavailable:
            COMMANDS_PUBLISHED.labels(outcome="unavailable").inc()
            raise

        COMMANDS_PUBLISHED.labels(outcome="published").inc()
        logger.info(
            "[PUBLISHER] %s <- %s%s",
            topic, wire_command, f" params={parameters}" if parameters else "",
        )
        return topic

    def publish_heartbeat(self, device_identifier: str, timestamp: Optional[int] = None) -> str:
        topic = build_heartbeat_topic(self.namespace, device_identifier)
        payload = str(int(timestamp if timestamp is not None else time.time()))
        self._transport.publish(topic, payload, qos=HEARTBEAT_QOS, retain=False)
        logger.debug("[PUBLISHER] Heartbeat %s <- %s", topic, payload)
        return topic

    def publish_device_status(self, device_identifier: str, status: dict) -> str:
        topic = f"{self.namespace}/{device_identifier}/status/cmd"
        self._transport.publish(topic, orjson.dumps(status), qos=STATUS_QOS, retain=True)
        logger.debug("[PUBLISHER] Status %s", topic)
        return topic

    @property
    def is_connected(self) -> bool:
        return self._transport.is_connected
