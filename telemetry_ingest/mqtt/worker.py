"""Worker de ingesta: un único consumidor de la cola.

El callback de paho solo encola (nunca toca la base de datos); este
thread procesa cada mensaje completo, efectos de reglas incluidos, antes
de tomar el siguiente. Un solo consumidor preserva el orden FIFO y hace
que el read-then-write del cooldown de reglas no necesite locks.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from common.models import utcnow

from ..metrics import MESSAGES_PROCESSED, MESSAGES_RECEIVED
from .backpressure import BackpressureQueue
from .backpressure_config import BackpressureConfig

logger = logging.getLogger(__name__)

_PAYLOAD_LOG_LIMIT = 256


@dataclass(frozen=True)
class InboundMessage:
    topic: str
    payload: bytes
    received_at: datetime


class MessageHandlerProtocol(Protocol):
    def handle(self, message: InboundMessage): ...


def _kind_label(topic: str) -> str:
    parts = topic.split("/")
    return parts[2] if len(parts) > 2 and parts[2] else "unknown"


def _preview(payload: bytes) -> str:
    text = payload[:_PAYLOAD_LOG_LIMIT].decode("utf-8", errors="replace")
    return text + ("..." if len(payload) > _PAYLOAD_LOG_LIMIT else "")


class IngestionWorker:
    """Cola + thread consumidor.

    - paho callback → enqueue() retorna inmediatamente
    - worker thread → processor.handle() (store, reglas, publish)
    - una excepción en un mensaje se registra y el loop sigue
    """

    def __init__(
        self,
        processor: MessageHandlerProtocol,
        queue_config: Optional[BackpressureConfig] = None,
        poll_timeout: float = 1.0,
    ):
        self._processor = processor
        self._queue: BackpressureQueue[InboundMessage] = BackpressureQueue(queue_config)
        self._poll_timeout = poll_timeout
        self._stop_event = threading.Event()
        self._drain = False
        self._accepting = True
        self._thread: Optional[threading.Thread] = None

        self._lock = threading.Lock()
        self._processed = 0
        self._errors = 0
        self._rejected = 0

    def enqueue(self, topic: str, payload: bytes, received_at: Optional[datetime] = None) -> None:
        """Non-blocking; never raises into the transport thread."""
        try:
            if not self._accepting:
                logger.debug("[WORKER] Not accepting, ignored topic=%s", topic)
                return
            MESSAGES_RECEIVED.inc()
            message = InboundMessage(topic, bytes(payload or b""), received_at or utcnow())
            if not self._queue.put(message):
                with self._lock:
                    self._rejected += 1
        except Exception:
            logger.exception("[WORKER] Failed to enqueue topic=%s", topic)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._accepting = True
        self._thread = threading.Thread(target=self._loop, daemon=True, name="ingest-worker")
        self._thread.start()
        logger.info("[WORKER] Started")

    def stop_accepting(self) -> None:
        self._accepting = False

    def stop(self, drain: bool = False, timeout: float = 10.0) -> None:
        """Stops the consumer after the in-flight message.

        With ``drain=True`` the messages already queued are processed first.
        """
        self._accepting = False
        self._drain = drain
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("[WORKER] Did not stop within %.1fs", timeout)
            self._thread = None
        logger.info("[WORKER] Stopped. %s", self.stats)

    def _loop(self) -> None:
        while True:
            if self._stop_event.is_set() and not (self._drain and not self._queue.is_empty):
                break
            message = self._queue.get(timeout=self._poll_timeout)
            if message is None:
                continue
            self._process(message)

    def process_pending(self) -> int:
        """Processes everything queued on the calling thread; returns the count."""
        count = 0
        while True:
            message = self._queue.get_nowait()
            if message is None:
                return count
            self._process(message)
            count += 1

    def _process(self, message: InboundMessage) -> None:
        try:
            self._processor.handle(message)
            with self._lock:
                self._processed += 1
        except Exception:
            with self._lock:
                self._errors += 1
            MESSAGES_PROCESSED.labels(kind=_kind_label(message.topic), outcome="failed").inc()
            logger.exception(
                "[WORKER] Failed processing topic=%s payload=%s",
                message.topic, _preview(message.payload),
            )

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def queue(self) -> BackpressureQueue[InboundMessage]:
        return self._queue

    @property
    def stats(self) -> dict:
        with self._lock:
            counters = {
                "processed": self._processed,
                "errors": self._errors,
                "rejected": self._rejected,
            }
        return {
            "running": self.is_running,
            "accepting": self._accepting,
            **counters,
            "queue": self._queue.get_stats(),
        }
