"""Configuración y estadísticas de la cola de ingesta."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass
class BackpressureConfig:
    """Configuración del límite de la cola.

    ``max_queue_size <= 0`` significa cola sin límite (default): ningún
    mensaje se pierde por saturación.
    """
    max_queue_size: int = 0
    drop_oldest: bool = True  # True = drop oldest, False = reject new

    @property
    def bounded(self) -> bool:
        return self.max_queue_size > 0

    @classmethod
    def from_env(cls) -> "BackpressureConfig":
        return cls(
            max_queue_size=int(os.getenv("MQTT_QUEUE_MAX_SIZE", "0")),
            drop_oldest=os.getenv("MQTT_DROP_OLDEST", "true").lower() == "true",
        )


@dataclass
class BackpressureStats:
    enqueued: int = 0
    dequeued: int = 0
    dropped: int = 0
    current_size: int = 0
    high_watermark: int = 0
