"""Topic router: ``<namespace>/<device>/<kind>[/<token>]`` → TopicRoute.

Shapes aceptados:
    farm/{device}/sensor/{token}
    farm/{device}/actuator/{token}
    farm/{device}/status
    farm/{device}/heartbeat
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from common.models import ComponentCategory

from .registry import ComponentRegistry, get_default_registry


class MessageKind(str, Enum):
    SENSOR = "sensor"
    ACTUATOR = "actuator"
    STATUS = "status"
    HEARTBEAT = "heartbeat"


_TOKEN_KINDS = {MessageKind.SENSOR, MessageKind.ACTUATOR}


@dataclass(frozen=True)
class TopicRoute:
    device_identifier: str
    kind: MessageKind
    token: Optional[str] = None
    catalog_identifier: Optional[str] = None


@dataclass(frozen=True)
class TopicParseResult:
    valid: bool
    route: Optional[TopicRoute] = None
    error: Optional[str] = None


class TopicRouter:
    """Parses inbound topics for one namespace."""

    def __init__(self, namespace: str, registry: Optional[ComponentRegistry] = None):
        self.namespace = namespace
        self._registry = registry or get_default_registry()

    def parse(self, topic: str) -> TopicParseResult:
        parts = topic.split("/")
        if len(parts) < 3:
            return TopicParseResult(valid=False, error=f"too few segments ({len(parts)})")

        if parts[0] != self.namespace:
            return TopicParseResult(valid=False, error=f"foreign namespace '{parts[0]}'")

        try:
            kind = MessageKind(parts[2])
        except ValueError:
            return TopicParseResult(valid=False, error=f"unknown kind '{parts[2]}'")

        expected = 4 if kind in _TOKEN_KINDS else 3
        if len(parts) != expected:
            return TopicParseResult(
                valid=False,
                error=f"{kind.value} topic needs {expected} segments, got {len(parts)}",
            )

        if any(not p for p in parts):
            return TopicParseResult(valid=False, error="empty segment")

        device_identifier = parts[1]
        if kind not in _TOKEN_KINDS:
            return TopicParseResult(valid=True, route=TopicRoute(device_identifier, kind))

        token = parts[3]
        category = ComponentCategory(kind.value)
        return TopicParseResult(
            valid=True,
            route=TopicRoute(
                device_identifier=device_identifier,
                kind=kind,
                token=token,
                catalog_identifier=self._registry.to_identifier(category, token),
            ),
        )

    def subscription_patterns(self) -> list[tuple[str, int]]:
        """(pattern, qos): sensor traffic best-effort, the rest at-least-once."""
        ns = self.namespace
        return [
            (f"{ns}/+/sensor/+", 0),
            (f"{ns}/+/actuator/+", 1),
            (f"{ns}/+/status", 1),
            (f"{ns}/+/heartbeat", 0),
        ]


def build_command_topic(namespace: str, device_identifier: str, component_token: str) -> str:
    return f"{namespace}/{device_identifier}/actuator/{component_token}/cmd"


def build_heartbeat_topic(namespace: str, device_identifier: str) -> str:
    return f"{namespace}/{device_identifier}/heartbeat/cmd"
