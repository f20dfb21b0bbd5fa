"""Cola FIFO entre el callback de paho y el worker de ingesta.

El productor (thread de red de paho) nunca se bloquea: ``put`` siempre
retorna inmediatamente. Con límite configurado, el desbordamiento se
resuelve por política explícita y se cuenta.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Generic, Optional, TypeVar

from ..metrics import QUEUE_DEPTH, QUEUE_DROPPED
from .backpressure_config import BackpressureConfig, BackpressureStats

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BackpressureQueue(Generic[T]):
    """Cola thread-safe, sin límite por defecto.

    Uso:
        queue = BackpressureQueue[InboundMessage]()

        # Productor
        queue.put(message)

        # Consumidor
        message = queue.get(timeout=1.0)
    """

    def __init__(self, config: Optional[BackpressureConfig] = None):
        self._config = config or BackpressureConfig.from_env()
        self._queue: deque[T] = deque()
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._stats = BackpressureStats()

        logger.info(
            "[QUEUE] Initialized: max_size=%s, drop_oldest=%s",
            self._config.max_queue_size if self._config.bounded else "unbounded",
            self._config.drop_oldest,
        )

    def put(self, item: T) -> bool:
        """Agrega un item.

        Returns:
            False si el item fue rechazado (cola llena, política reject-new).
        """
        with self._lock:
            if self._config.bounded and len(self._queue) >= self._config.max_queue_size:
                self._stats.dropped += 1
                QUEUE_DROPPED.inc()
                if not self._config.drop_oldest:
                    logger.warning("[QUEUE] Full (%d), rejected newest message", len(self._queue))
                    return False
                self._queue.popleft()
                logger.warning("[QUEUE] Full (%d), dropped oldest message", self._config.max_queue_size)

            self._queue.append(item)
            self._stats.enqueued += 1
            self._update_size()
            self._not_empty.notify()
            return True

    def get(self, timeout: Optional[float] = None) -> Optional[T]:
        """Obtiene el siguiente item, o None si vence ``timeout``."""
        with self._not_empty:
            if not self._queue:
                self._not_empty.wait(timeout)
            if not self._queue:
                return None
            item = self._queue.popleft()
            self._stats.dequeued += 1
            self._update_size()
            return item

    def get_nowait(self) -> Optional[T]:
        with self._lock:
            if not self._queue:
                return None
            item = self._queue.popleft()
            self._stats.dequeued += 1
            self._update_size()
            return item

    def _update_size(self) -> None:
        # caller holds the lock
        size = len(self._queue)
        self._stats.current_size = size
        if size > self._stats.high_watermark:
            self._stats.high_watermark = size
        QUEUE_DEPTH.set(size)

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._queue)

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return not self._queue

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "enqueued": self._stats.enqueued,
                "dequeued": self._stats.dequeued,
                "dropped": self._stats.dropped,
                "current_size": len(self._queue),
                "high_watermark": self._stats.high_watermark,
                "max_size": self._config.max_queue_size if self._config.bounded else None,
                "drop_oldest": self._config.drop_oldest,
            }
