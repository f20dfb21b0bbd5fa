"""Emisión de comandos a actuadores (automatización y API).

Un comando siempre pasa por: token de catálogo → publish → log de
auditoría → last_interaction del deployment destino. Si el transporte
está caído, el log se escribe igual (intención registrada).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from common.models import ComponentCategory, ComponentDeployment, utcnow

from ..errors import TransportUnavailable
from ..ingest import repository as ingest_repo
from ..mqtt.publisher import CommandPublisher

logger = logging.getLogger(__name__)


@dataclass
class CommandDispatch:
    """Resultado de un comando emitido."""

    deployment_id: int
    device_identifier: str
    component_token: str
    command: str
    delivered: bool
    topic: Optional[str] = None
    error: Optional[str] = None


def issue_actuator_command(
    db: Session,
    publisher: CommandPublisher,
    deployment: ComponentDeployment,
    command: Any,
    parameters: Optional[dict] = None,
    issued_by: Optional[int] = None,
    now: Optional[datetime] = None,
) -> CommandDispatch:
    """Publica y registra un comando. No hace commit.

    Raises:
        InvalidParameter: comando inválido para el actuador; nada se publica
            ni se registra.
    """
    now = now or utcnow()
    device_identifier = deployment.device.identifier
    token = publisher.registry.to_token(ComponentCategory.ACTUATOR, deployment.component_type.identifier)
    wire_command = publisher.prepare(token, command)

    dispatch = CommandDispatch(
        deployment_id=deployment.id,
        device_identifier=device_identifier,
        component_token=token,
        command=wire_command,
        delivered=False,
    )
    try:
        dispatch.topic = publisher.send(device_identifier, token, wire_command, parameters)
        dispatch.delivered = True
    except TransportUnavailable as e:
        dispatch.error = str(e)
        logger.error(
            "[COMMANDS] Not delivered %s/%s=%s (%s); logging intent",
            device_identifier, token, wire_command, e.reason,
        )

    ingest_repo.insert_command(db, deployment.id, wire_command, parameters, issued_by, now)
    ingest_repo.touch_deployment(deployment, now)
    return dispatch
