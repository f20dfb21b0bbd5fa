"""Runtime de ingesta: arma y gobierna el pipeline completo.

    paho thread ──enqueue──▶ BackpressureQueue ──▶ IngestionWorker
                                                      │
                                    MessageProcessor ─┤─▶ RuleEngine ─▶ CommandPublisher ─▶ transport
                                                      │
    LivenessMonitor (thread propio, timer) ───────────┘ (mismo store)

Orden de apagado: dejar de aceptar mensajes, detener el monitor entre
barridos, dejar que el worker termine el mensaje en curso y recién
entonces desconectar el transporte.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from common.config import Settings, get_settings
from common.db import get_engine, get_session_factory
from common.models import utcnow

from .automation.engine import RuleEngine
from .ingest.processors import MessageProcessor
from .monitoring.health import HealthChecker
from .monitoring.liveness import LivenessMonitor
from .mqtt.backpressure_config import BackpressureConfig
from .mqtt.client import MQTTTransport
from .mqtt.publisher import CommandPublisher
from .mqtt.registry import ComponentRegistry, get_default_registry
from .mqtt.topics import TopicRouter
from .mqtt.transport import MessageTransport
from .mqtt.worker import IngestionWorker

logger = logging.getLogger(__name__)


class IngestionRuntime:
    def __init__(
        self,
        transport: MessageTransport,
        session_factory: Callable[[], Session],
        namespace: str = "farm",
        registry: Optional[ComponentRegistry] = None,
        queue_config: Optional[BackpressureConfig] = None,
        liveness_interval_seconds: float = 60.0,
        liveness_threshold_seconds: float = 60.0,
        clock: Callable[[], datetime] = utcnow,
        engine: Optional[Engine] = None,
    ):
        self.transport = transport
        self.session_factory = session_factory
        self.registry = registry or get_default_registry()

        self.router = TopicRouter(namespace, self.registry)
        self.publisher = CommandPublisher(transport, namespace, self.registry)
        self.rule_engine = RuleEngine(self.publisher, clock=clock)
        self.processor = MessageProcessor(session_factory, self.router, self.rule_engine)
        self.worker = IngestionWorker(self.processor, queue_config)
        self.monitor = LivenessMonitor(
            session_factory,
            interval_seconds=liveness_interval_seconds,
            threshold_seconds=liveness_threshold_seconds,
            clock=clock,
        )
        self._health = HealthChecker(engine)
        self._running = False

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "IngestionRuntime":
        settings = settings or get_settings()
        transport = MQTTTransport(
            broker_host=settings.mqtt_broker_host,
            broker_port=settings.mqtt_broker_port,
            username=settings.mqtt_username,
            password=settings.mqtt_password,
            client_id=settings.mqtt_client_id,
            keepalive=settings.mqtt_keepalive,
        )
        return cls(
            transport=transport,
            session_factory=get_session_factory(),
            namespace=settings.topic_namespace,
            queue_config=BackpressureConfig.from_env(),
            liveness_interval_seconds=settings.liveness_interval_seconds,
            liveness_threshold_seconds=settings.liveness_threshold_seconds,
            engine=get_engine(),
        )

    def start(self, connect_timeout: float = 5.0) -> bool:
        """Starts worker, monitor and transport.

        Returns whether the broker session came up within ``connect_timeout``;
        the transport keeps retrying in the background either way.
        """
        if self._running:
            return self.transport.is_connected

        self.transport.set_message_handler(self.worker.enqueue)
        for pattern, qos in self.router.subscription_patterns():
            self.transport.subscribe(pattern, qos=qos)

        self.worker.start()
        self.monitor.start()
        connected = self.transport.connect(timeout=connect_timeout)
        self._running = True
        logger.info("[RUNTIME] Started (namespace=%s, connected=%s)", self.router.namespace, connected)
        return connected

    def stop(self) -> None:
        if not self._running:
            return
        self.worker.stop_accepting()
        self.monitor.stop()
        self.worker.stop(drain=False)
        self.transport.disconnect()
        self._running = False
        logger.info("[RUNTIME] Stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def stats(self) -> dict:
        transport_stats = getattr(self.transport, "stats", None)
        return {
            "running": self._running,
            "transport": transport_stats if transport_stats is not None else {"connected": self.transport.is_connected},
            "worker": self.worker.stats,
            "rules": self.rule_engine.stats,
            "liveness": self.monitor.stats,
        }

    def health_check(self) -> dict:
        return self._health.get_status(
            mqtt_connected=self.transport.is_connected,
            worker_stats=self.worker.stats,
            monitor_running=self.monitor.is_running,
        ).to_dict()


# Singleton
_runtime: Optional[IngestionRuntime] = None


def get_runtime() -> Optional[IngestionRuntime]:
    return _runtime


def start_runtime(settings: Optional[Settings] = None) -> bool:
    global _runtime

    if _runtime is not None:
        return _runtime.is_running

    _runtime = IngestionRuntime.from_settings(settings)
    return _runtime.start()


def stop_runtime() -> None:
    global _runtime

    if _runtime is not None:
        _runtime.stop()
        _runtime = None
