"""Health checks del proceso de ingesta."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine

from common.db import check_connection


@dataclass
class HealthStatus:
    healthy: bool
    mqtt_connected: bool
    db_connected: bool
    worker_running: bool
    monitor_running: bool
    messages_processed: int
    messages_failed: int
    queue_depth: int

    def to_dict(self) -> dict:
        return {
            "healthy": self.healthy,
            "mqtt_connected": self.mqtt_connected,
            "db_connected": self.db_connected,
            "worker_running": self.worker_running,
            "monitor_running": self.monitor_running,
            "messages_processed": self.messages_processed,
            "messages_failed": self.messages_failed,
            "queue_depth": self.queue_depth,
        }


class HealthChecker:
    def __init__(self, engine: Optional[Engine] = None):
        self._engine = engine

    def check_database(self) -> bool:
        if self._engine is None:
            return False
        return check_connection(self._engine)

    def get_status(
        self,
        mqtt_connected: bool,
        worker_stats: dict,
        monitor_running: bool,
    ) -> HealthStatus:
        db_ok = self.check_database()
        worker_running = bool(worker_stats.get("running"))
        return HealthStatus(
            healthy=mqtt_connected and db_ok and worker_running,
            mqtt_connected=mqtt_connected,
            db_connected=db_ok,
            worker_running=worker_running,
            monitor_running=monitor_running,
            messages_processed=worker_stats.get("processed", 0),
            messages_failed=worker_stats.get("errors", 0),
            queue_depth=worker_stats.get("queue", {}).get("current_size", 0),
        )
