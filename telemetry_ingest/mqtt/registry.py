"""Registro bidireccional token de topic ↔ identificador de catálogo.

Una sola tabla es la fuente de verdad para ambos sentidos:
- ingesta: ``farm/esp32-farm-001/sensor/temperature`` → ``dht11_sensor_temperature``
- comandos: ``gate_servo`` → ``farm/esp32-farm-001/actuator/servo/cmd``

Tokens o identificadores desconocidos pasan sin cambios, así un tipo de
componente nuevo degrada a "identifier == token" en lugar de perderse.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from common.models import ComponentCategory


@dataclass(frozen=True)
class ComponentMapping:
    category: ComponentCategory
    token: str
    identifier: str
    angular: bool = False  # servo-like: command is an angle in [0, 180]


DEFAULT_MAPPINGS: tuple[ComponentMapping, ...] = (
    ComponentMapping(ComponentCategory.SENSOR, "temperature", "dht11_sensor_temperature"),
    ComponentMapping(ComponentCategory.SENSOR, "humidity", "dht11_sensor_humidity"),
    ComponentMapping(ComponentCategory.SENSOR, "water_temp", "ds18b20_sensor"),
    ComponentMapping(ComponentCategory.SENSOR, "water_level", "water_level_sensor"),
    ComponentMapping(ComponentCategory.SENSOR, "ldr", "ldr_sensor"),
    ComponentMapping(ComponentCategory.SENSOR, "pir", "pir_sensor"),
    ComponentMapping(ComponentCategory.ACTUATOR, "light", "lighting_system"),
    ComponentMapping(ComponentCategory.ACTUATOR, "fan1", "ventilation_fan_1"),
    ComponentMapping(ComponentCategory.ACTUATOR, "fan2", "ventilation_fan_2"),
    ComponentMapping(ComponentCategory.ACTUATOR, "pump", "water_pump"),
    ComponentMapping(ComponentCategory.ACTUATOR, "feeder", "automatic_feeder"),
    ComponentMapping(ComponentCategory.ACTUATOR, "servo", "gate_servo", angular=True),
)


class ComponentRegistry:
    """Lookup (category, token) ↔ (category, identifier)."""

    def __init__(self, mappings: Iterable[ComponentMapping] = DEFAULT_MAPPINGS):
        self._by_token: dict[tuple[str, str], ComponentMapping] = {}
        self._by_identifier: dict[tuple[str, str], ComponentMapping] = {}
        for m in mappings:
            category = ComponentCategory(m.category).value
            if (category, m.token) in self._by_token:
                raise ValueError(f"Duplicate token {category}/{m.token}")
            if (category, m.identifier) in self._by_identifier:
                raise ValueError(f"Duplicate identifier {category}/{m.identifier}")
            self._by_token[(category, m.token)] = m
            self._by_identifier[(category, m.identifier)] = m

    def to_identifier(self, category: str, token: str) -> str:
        m = self._by_token.get((ComponentCategory(category).value, token))
        return m.identifier if m else token

    def to_token(self, category: str, identifier: str) -> str:
        m = self._by_identifier.get((ComponentCategory(category).value, identifier))
        return m.token if m else identifier

    def is_angular(self, token: str) -> bool:
        m = self._by_token.get((ComponentCategory.ACTUATOR.value, token))
        return bool(m and m.angular)

    def get(self, category: str, token: str) -> Optional[ComponentMapping]:
        return self._by_token.get((ComponentCategory(category).value, token))


_default_registry: Optional[ComponentRegistry] = None


def get_default_registry() -> ComponentRegistry:
    global _default_registry
    if _default_registry is None:
        _default_registry = ComponentRegistry()
    return _default_registry
