"""Message processors: one handler per topic kind.

Se ejecutan solo en el worker de ingesta. Cada mensaje usa su propia
sesión y hace un commit; los sensores invocan el motor de reglas después
del commit, en el mismo thread, antes de que el worker tome el siguiente
mensaje.

Errores:
- payload inválido / topic inválido → warning, MALFORMED
- dispositivo o deployment desconocido → warning, UNRESOLVED
- fallas del store → se propagan al worker (error log, sigue el loop)
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional

from sqlalchemy.orm import Session

from common.models import ComponentCategory, Device

from ..metrics import MESSAGES_PROCESSED
from ..mqtt.topics import MessageKind, TopicRoute, TopicRouter
from ..mqtt.validators import (
    validate_actuator_payload,
    validate_heartbeat_payload,
    validate_sensor_payload,
    validate_status_payload,
)
from ..mqtt.worker import InboundMessage
from . import repository as repo

logger = logging.getLogger(__name__)


class ProcessOutcome(str, Enum):
    PROCESSED = "processed"
    MALFORMED = "malformed"
    UNRESOLVED = "unresolved"


class MessageProcessor:
    """Dispatch by kind: sensor, actuator (echo), status, heartbeat."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        router: TopicRouter,
        rule_engine=None,
    ):
        self._session_factory = session_factory
        self._router = router
        self._rule_engine = rule_engine
        self._handlers = {
            MessageKind.SENSOR: self._handle_sensor,
            MessageKind.ACTUATOR: self._handle_actuator,
            MessageKind.STATUS: self._handle_status,
            MessageKind.HEARTBEAT: self._handle_heartbeat,
        }

    def handle(self, message: InboundMessage) -> ProcessOutcome:
        parsed = self._router.parse(message.topic)
        if not parsed.valid:
            logger.warning("[PROCESSOR] Rejected topic %s: %s", message.topic, parsed.error)
            MESSAGES_PROCESSED.labels(kind="unknown", outcome=ProcessOutcome.MALFORMED.value).inc()
            return ProcessOutcome.MALFORMED

        route = parsed.route
        outcome = self._handlers[route.kind](route, message)
        MESSAGES_PROCESSED.labels(kind=route.kind.value, outcome=outcome.value).inc()
        return outcome

    # ------------------------------------------------------------------
    # sensor
    # ------------------------------------------------------------------

    def _handle_sensor(self, route: TopicRoute, message: InboundMessage) -> ProcessOutcome:
        result = validate_sensor_payload(message.payload)
        if not result.valid:
            logger.warning("[PROCESSOR] Malformed sensor payload on %s: %s", message.topic, result.error)
            return ProcessOutcome.MALFORMED

        payload = result.payload
        with self._session_factory() as db:
            deployment = repo.find_active_deployment(
                db, route.device_identifier, route.catalog_identifier, ComponentCategory.SENSOR
            )
            if deployment is None:
                logger.warning(
                    "[PROCESSOR] No active sensor deployment for device=%s component=%s",
                    route.device_identifier, route.catalog_identifier,
                )
                return ProcessOutcome.UNRESOLVED

            reading_ts = payload.reading_time(message.received_at)
            repo.insert_reading(db, deployment.id, payload.value, payload.unit, reading_ts)
            repo.mark_deployment_seen(deployment, message.received_at, payload.value, reading_ts)
            repo.touch_device(deployment.device, message.received_at)
            db.commit()

            logger.debug(
                "[PROCESSOR] Reading deployment=%d value=%s %s",
                deployment.id, payload.value, payload.unit,
            )

            if self._rule_engine is not None:
                self._rule_engine.evaluate(db, deployment.id, payload.value)

        return ProcessOutcome.PROCESSED

    # ------------------------------------------------------------------
    # actuator echo
    # ------------------------------------------------------------------

    def _handle_actuator(self, route: TopicRoute, message: InboundMessage) -> ProcessOutcome:
        result = validate_actuator_payload(message.payload)
        if not result.valid:
            logger.warning("[PROCESSOR] Malformed actuator echo on %s: %s", message.topic, result.error)
            return ProcessOutcome.MALFORMED

        canonical = result.payload
        with self._session_factory() as db:
            deployment = repo.find_active_deployment(
                db, route.device_identifier, route.catalog_identifier, ComponentCategory.ACTUATOR
            )
            if deployment is None:
                logger.warning(
                    "[PROCESSOR] No active actuator deployment for device=%s component=%s",
                    route.device_identifier, route.catalog_identifier,
                )
                return ProcessOutcome.UNRESOLVED

            repo.insert_command(
                db,
                deployment.id,
                canonical.command,
                canonical.parameters,
                issued_by=None,
                timestamp=message.received_at,
            )
            repo.mark_deployment_seen(deployment, message.received_at, canonical.state)
            repo.touch_device(deployment.device, message.received_at)
            db.commit()

            logger.debug(
                "[PROCESSOR] Echo deployment=%d command=%s state=%s",
                deployment.id, canonical.command, canonical.state,
            )
        return ProcessOutcome.PROCESSED

    # ------------------------------------------------------------------
    # status / heartbeat
    # ------------------------------------------------------------------

    def _handle_status(self, route: TopicRoute, message: InboundMessage) -> ProcessOutcome:
        result = validate_status_payload(message.payload)
        if not result.valid:
            logger.warning("[PROCESSOR] Malformed status on %s: %s", message.topic, result.error)
            return ProcessOutcome.MALFORMED

        with self._session_factory() as db:
            device = self._resolve_device(db, route)
            if device is None:
                return ProcessOutcome.UNRESOLVED
            repo.merge_device_status(device, result.payload, message.received_at)
            db.commit()
        return ProcessOutcome.PROCESSED

    def _handle_heartbeat(self, route: TopicRoute, message: InboundMessage) -> ProcessOutcome:
        result = validate_heartbeat_payload(message.payload)
        if not result.valid:
            logger.warning("[PROCESSOR] Malformed heartbeat on %s: %s", message.topic, result.error)
            return ProcessOutcome.MALFORMED

        with self._session_factory() as db:
            device = self._resolve_device(db, route)
            if device is None:
                return ProcessOutcome.UNRESOLVED
            repo.touch_device(device, message.received_at)
            db.commit()
        return ProcessOutcome.PROCESSED

    def _resolve_device(self, db: Session, route: TopicRoute) -> Optional[Device]:
        device = repo.get_device_by_identifier(db, route.device_identifier)
        if device is None:
            logger.warning(
                "[PROCESSOR] Unknown device %s (%s)", route.device_identifier, route.kind.value
            )
        return device
