"""Resumen de salud de la flota y broadcast de heartbeats.

Ventanas de actividad:
    dispositivos: last_seen dentro de 5 min
    sensores:     last_interaction dentro de 10 min
    actuadores:   last_interaction dentro de 30 min

Score = 40% dispositivos + 40% sensores + 20% actuadores (grupo vacío = 100).
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from common.models import ComponentCategory, ComponentDeployment, ComponentType, Device, utcnow

from ..errors import TransportUnavailable
from ..mqtt.publisher import CommandPublisher
from ..schemas import HealthGroup, SystemHealth

logger = logging.getLogger(__name__)

DEVICE_WINDOW = timedelta(minutes=5)
SENSOR_WINDOW = timedelta(minutes=10)
ACTUATOR_WINDOW = timedelta(minutes=30)

WEIGHTS = {"devices": 0.4, "sensors": 0.4, "actuators": 0.2}
HEALTHY_THRESHOLD = 80
WARNING_THRESHOLD = 60


def _group(total: int, online: int) -> HealthGroup:
    score = (online / total * 100) if total else 100.0
    return HealthGroup(total=total, online=online, offline=total - online, score=round(score, 1))


def _count_devices(db: Session, since: datetime) -> HealthGroup:
    total = db.execute(select(func.count(Device.id)).where(Device.active.is_(True))).scalar_one()
    online = db.execute(
        select(func.count(Device.id)).where(Device.active.is_(True), Device.last_seen >= since)
    ).scalar_one()
    return _group(total, online)


def _count_deployments(db: Session, category: ComponentCategory, since: datetime) -> HealthGroup:
    base = (
        select(func.count(ComponentDeployment.id))
        .join(ComponentType, ComponentDeployment.component_type_id == ComponentType.id)
        .where(ComponentType.category == category.value, ComponentDeployment.active.is_(True))
    )
    total = db.execute(base).scalar_one()
    online = db.execute(base.where(ComponentDeployment.last_interaction >= since)).scalar_one()
    return _group(total, online)


def classify_score(score: float) -> str:
    if score >= HEALTHY_THRESHOLD:
        return "healthy"
    if score >= WARNING_THRESHOLD:
        return "warning"
    return "critical"


def get_system_health(db: Session, now: Optional[datetime] = None) -> SystemHealth:
    now = now or utcnow()
    devices = _count_devices(db, now - DEVICE_WINDOW)
    sensors = _count_deployments(db, ComponentCategory.SENSOR, now - SENSOR_WINDOW)
    actuators = _count_deployments(db, ComponentCategory.ACTUATOR, now - ACTUATOR_WINDOW)

    score = round(
        devices.score * WEIGHTS["devices"]
        + sensors.score * WEIGHTS["sensors"]
        + actuators.score * WEIGHTS["actuators"]
    )

    issues = []
    if devices.offline:
        issues.append(f"{devices.offline} device(s) not seen in {int(DEVICE_WINDOW.total_seconds() // 60)} min")
    if sensors.offline:
        issues.append(f"{sensors.offline} sensor(s) silent for {int(SENSOR_WINDOW.total_seconds() // 60)} min")
    if actuators.offline:
        issues.append(f"{actuators.offline} actuator(s) idle for {int(ACTUATOR_WINDOW.total_seconds() // 60)} min")

    return SystemHealth(
        status=classify_score(score),
        score=score,
        devices=devices,
        sensors=sensors,
        actuators=actuators,
        checked_at=now,
        issues=issues,
    )


def broadcast_heartbeat(db: Session, publisher: CommandPublisher, now: Optional[datetime] = None) -> int:
    """Heartbeat a cada dispositivo activo visto en los últimos 5 min.

    Fallos por dispositivo se registran y se continúa con el siguiente.
    """
    now = now or utcnow()
    identifiers = db.execute(
        select(Device.identifier)
        .where(Device.active.is_(True), Device.last_seen >= now - DEVICE_WINDOW)
        .order_by(Device.identifier)
    ).scalars().all()

    timestamp = int((now - datetime(1970, 1, 1)).total_seconds())
    contacted = 0
    for identifier in identifiers:
        try:
            publisher.publish_heartbeat(identifier, timestamp)
            contacted += 1
        except TransportUnavailable as e:
            logger.error("[HEALTH] Heartbeat to %s failed: %s", identifier, e.reason)

    logger.info("[HEALTH] Heartbeat sent to %d/%d device(s)", contacted, len(identifiers))
    return contacted
