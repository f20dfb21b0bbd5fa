"""Repositorio de ingesta - operaciones de persistencia del pipeline.

Todas las escrituras son de una fila o un UPDATE dirigido; el commit lo
hace el caller (un commit por mensaje).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from common.models import (
    ActuatorCommand,
    ComponentCategory,
    ComponentDeployment,
    ComponentType,
    ConnectionStatus,
    Device,
    SensorReading,
)

logger = logging.getLogger(__name__)


def get_device_by_identifier(db: Session, identifier: str) -> Optional[Device]:
    return db.execute(
        select(Device).where(Device.identifier == identifier)
    ).scalar_one_or_none()


def find_active_deployment(
    db: Session,
    device_identifier: str,
    catalog_identifier: str,
    category: ComponentCategory,
) -> Optional[ComponentDeployment]:
    """Deployment activo para (dispositivo, tipo de catálogo, categoría).

    Si hay más de uno (no debería) se usa el más antiguo.
    """
    stmt = (
        select(ComponentDeployment)
        .join(Device, ComponentDeployment.device_id == Device.id)
        .join(ComponentType, ComponentDeployment.component_type_id == ComponentType.id)
        .where(
            Device.identifier == device_identifier,
            ComponentType.identifier == catalog_identifier,
            ComponentType.category == ComponentCategory(category).value,
            ComponentDeployment.active.is_(True),
        )
        .order_by(ComponentDeployment.id)
        .limit(1)
    )
    return db.execute(stmt).scalar_one_or_none()


def insert_reading(
    db: Session,
    deployment_id: int,
    value: float,
    unit: Optional[str],
    timestamp: datetime,
) -> SensorReading:
    reading = SensorReading(deployment_id=deployment_id, value=value, unit=unit, timestamp=timestamp)
    db.add(reading)
    return reading


def insert_command(
    db: Session,
    deployment_id: int,
    command: str,
    parameters: Optional[dict],
    issued_by: Optional[int],
    timestamp: datetime,
) -> ActuatorCommand:
    entry = ActuatorCommand(
        deployment_id=deployment_id,
        command=command,
        parameters=parameters,
        issued_by=issued_by,
        timestamp=timestamp,
    )
    db.add(entry)
    return entry


def mark_deployment_seen(
    deployment: ComponentDeployment,
    received_at: datetime,
    value: Optional[float] = None,
    value_ts: Optional[datetime] = None,
) -> None:
    """Fresh inbound signal: last interaction, optional value, status online."""
    deployment.last_interaction = received_at
    deployment.connection_status = ConnectionStatus.ONLINE.value
    if value is not None:
        deployment.last_value = value
        deployment.last_value_ts = value_ts or received_at


def touch_deployment(deployment: ComponentDeployment, at: datetime) -> None:
    """Outbound interaction only; connection status is left alone."""
    deployment.last_interaction = at


def touch_device(device: Device, at: datetime) -> None:
    device.last_seen = at


def merge_device_status(device: Device, status: dict[str, Any], at: datetime) -> None:
    merged = dict(device.device_metadata or {})
    merged.update(status)
    device.device_metadata = merged
    device.last_seen = at

    ip = status.get("ip") or status.get("ipAddress")
    if isinstance(ip, str) and ip:
        device.ip_address = ip
