"""Liveness monitor: degrada deployments online sin señal reciente.

La única transición que realiza es online → offline. La vuelta a online
solo la hacen los processors al recibir un mensaje nuevo.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from common.models import ComponentDeployment, ConnectionStatus, utcnow

from ..metrics import LIVENESS_OFFLINE

logger = logging.getLogger(__name__)


@dataclass
class LivenessStats:
    sweeps: int = 0
    demoted: int = 0
    errors: int = 0
    last_sweep_at: Optional[datetime] = None
    last_demoted: int = 0


class LivenessMonitor:
    """Barrido periódico (default cada 60s, umbral 60s).

    Uso:
        monitor = LivenessMonitor(session_factory)
        monitor.start()
        ...
        monitor.stop()   # espera a que termine el barrido en curso
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        interval_seconds: float = 60.0,
        threshold_seconds: float = 60.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._interval = interval_seconds
        self._threshold = timedelta(seconds=threshold_seconds)
        self._clock = clock
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._stats = LivenessStats()

    def sweep(self) -> int:
        """Marks stale online deployments offline; returns how many flipped."""
        now = self._clock()
        cutoff = now - self._threshold
        stmt = (
            update(ComponentDeployment)
            .where(
                ComponentDeployment.active.is_(True),
                ComponentDeployment.connection_status == ConnectionStatus.ONLINE.value,
                or_(
                    ComponentDeployment.last_interaction < cutoff,
                    ComponentDeployment.last_interaction.is_(None),
                ),
            )
            .values(connection_status=ConnectionStatus.OFFLINE.value)
            .execution_options(synchronize_session=False)
        )
        with self._session_factory() as db:
            result = db.execute(stmt)
            db.commit()
            demoted = result.rowcount or 0

        self._stats.sweeps += 1
        self._stats.demoted += demoted
        self._stats.last_demoted = demoted
        self._stats.last_sweep_at = now
        if demoted:
            LIVENESS_OFFLINE.inc(demoted)
            logger.info("[LIVENESS] %d deployment(s) marked offline (no interaction since %s)", demoted, cutoff)
        else:
            logger.debug("[LIVENESS] Sweep found nothing stale")
        return demoted

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True, name="liveness-monitor")
        self._thread.start()
        logger.info(
            "[LIVENESS] Started (interval=%.0fs, threshold=%.0fs)",
            self._interval, self._threshold.total_seconds(),
        )

    def stop(self, timeout: float = 30.0) -> None:
        """Cancels the timer; a sweep in progress runs to completion."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("[LIVENESS] Stopped")

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.sweep()
            except Exception:
                self._stats.errors += 1
                logger.exception("[LIVENESS] Sweep failed")
            self._stop_event.wait(self._interval)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def stats(self) -> dict:
        return {
            "running": self.is_running,
            "interval_seconds": self._interval,
            "threshold_seconds": self._threshold.total_seconds(),
            "sweeps": self._stats.sweeps,
            "demoted": self._stats.demoted,
            "last_demoted": self._stats.last_demoted,
            "errors": self._stats.errors,
            "last_sweep_at": self._stats.last_sweep_at.isoformat() if self._stats.last_sweep_at else None,
        }
