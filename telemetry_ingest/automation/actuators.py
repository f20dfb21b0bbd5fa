"""Comandos de actuadores emitidos por usuarios."""

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
)

from ..errors import InvalidParameter, NotFound
from ..mqtt.publisher import CommandPublisher
from .commands import CommandDispatch, issue_actuator_command

logger = logging.getLogger(__name__)


def send_actuator_command(
    db: Session,
    publisher: CommandPublisher,
    deployment_id: int,
    command: Any,
    parameters: Optional[dict] = None,
    issued_by: Optional[int] = None,
    now: Optional[datetime] = None,
) -> CommandDispatch:
    """Publica un comando y lo registra.

    Raises:
        NotFound: el deployment no existe.
        InvalidParameter: no es un actuador, o el comando es inválido para
            él (p. ej. ángulo fuera de rango); nada se publica ni registra.
    """
    deployment = db.get(ComponentDeployment, deployment_id)
    if deployment is None:
        raise NotFound(f"Deployment {deployment_id} not found")
    if deployment.category != ComponentCategory.ACTUATOR.value:
        raise InvalidParameter(f"Deployment {deployment_id} is not an actuator")

    dispatch = issue_actuator_command(
        db, publisher, deployment, command, parameters, issued_by=issued_by, now=now
    )
    db.commit()
    logger.info(
        "[ACTUATORS] %s/%s=%s by user=%s (delivered=%s)",
        dispatch.device_identifier, dispatch.component_token, dispatch.command,
        issued_by, dispatch.delivered,
    )
    return dispatch


def get_latest_commands(db: Session, deployment_id: int, limit: int = 10) -> list[ActuatorCommand]:
    stmt = (
        select(ActuatorCommand)
        .where(ActuatorCommand.deployment_id == deployment_id)
        .order_by(ActuatorCommand.timestamp.desc(), ActuatorCommand.id.desc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())


def get_actuator_deployments(db: Session) -> list[ComponentDeployment]:
    stmt = (
        select(ComponentDeployment)
        .join(ComponentType, ComponentDeployment.component_type_id == ComponentType.id)
        .where(
            ComponentType.category == ComponentCategory.ACTUATOR.value,
            ComponentDeployment.active.is_(True),
        )
        .order_by(ComponentDeployment.id)
    )
    return list(db.execute(stmt).scalars().all())
