"""Motor de reglas de automatización.

Se ejecuta dentro del worker de ingesta, sincrónicamente, después de
persistir cada lectura de sensor. Por cada regla activa del deployment:

1. cooldown vigente → skip (solo debug)
2. ``value <operator> threshold``; operador desconocido → no match
3. match → acción (trigger_actuator | create_alert), luego
   ``last_triggered_at = now`` aunque la acción haya fallado

Las reglas son independientes: el fallo de una no afecta a las demás.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from common.models import (
    Alert,
    AutomationActionType,
    AutomationRule,
    ComponentCategory,
    utcnow,
)

from ..errors import InvalidParameter
from ..metrics import RULES_TRIGGERED
from ..mqtt.publisher import CommandPublisher
from .commands import issue_actuator_command
from .rules import cooldown_remaining, evaluate_condition

logger = logging.getLogger(__name__)

DEFAULT_ALERT_TITLE = "Automation Alert"
DEFAULT_ALERT_MESSAGE = "An automation rule was triggered"
DEFAULT_ALERT_SEVERITY = "warning"
DEFAULT_ACTUATOR_COMMAND = "1"


class RuleEngine:
    def __init__(
        self,
        publisher: Optional[CommandPublisher],
        clock: Callable = utcnow,
    ):
        self._publisher = publisher
        self._clock = clock
        self._evaluations = 0
        self._triggered = 0
        self._failed = 0

    def evaluate(self, db: Session, sensor_deployment_id: int, value: float) -> list[int]:
        """Evaluates active rules for a sensor reading; returns the ids triggered."""
        rules = db.execute(
            select(AutomationRule)
            .where(
                AutomationRule.sensor_deployment_id == sensor_deployment_id,
                AutomationRule.is_active.is_(True),
            )
            .order_by(AutomationRule.id)
        ).scalars().all()

        triggered: list[int] = []
        for rule in rules:
            self._evaluations += 1
            now = self._clock()

            remaining = cooldown_remaining(rule, now)
            if remaining:
                logger.debug(
                    "[RULES] Rule %d '%s' in cooldown (%ds remaining)",
                    rule.id, rule.name, int(remaining.total_seconds()),
                )
                continue

            if not evaluate_condition(value, rule.operator, rule.threshold_value):
                continue

            logger.info(
                "[RULES] Rule %d '%s' triggered: %s %s %s",
                rule.id, rule.name, value, rule.operator, rule.threshold_value,
            )
            self._run_action(db, rule, now)
            self._mark_triggered(db, rule, now)
            triggered.append(rule.id)

        return triggered

    def _run_action(self, db: Session, rule: AutomationRule, now) -> None:
        action = rule.action_type
        rule_id, rule_name = rule.id, rule.name
        try:
            if action == AutomationActionType.TRIGGER_ACTUATOR.value:
                self._trigger_actuator(db, rule, now)
            elif action == AutomationActionType.CREATE_ALERT.value:
                self._create_alert(db, rule, now)
            else:
                raise InvalidParameter(f"Unknown action type '{action}'")
            db.commit()
            self._triggered += 1
            RULES_TRIGGERED.labels(action=str(action), outcome="ok").inc()
        except Exception:
            db.rollback()
            self._failed += 1
            RULES_TRIGGERED.labels(action=str(action), outcome="failed").inc()
            logger.exception("[RULES] Action for rule %d '%s' failed", rule_id, rule_name)

    def _mark_triggered(self, db: Session, rule: AutomationRule, now) -> None:
        rule_id = rule.id
        try:
            rule.last_triggered_at = now
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("[RULES] Could not record trigger time for rule %d", rule_id)

    def _trigger_actuator(self, db: Session, rule: AutomationRule, now) -> None:
        if self._publisher is None:
            raise InvalidParameter("No command publisher configured")
        target = rule.target_deployment
        if target is None:
            raise InvalidParameter(f"Rule {rule.id} has no target deployment")
        if target.category != ComponentCategory.ACTUATOR.value:
            raise InvalidParameter(f"Target deployment {target.id} is not an actuator")

        dispatch = issue_actuator_command(
            db,
            self._publisher,
            target,
            rule.actuator_command or DEFAULT_ACTUATOR_COMMAND,
            rule.actuator_parameters,
            issued_by=None,
            now=now,
        )
        logger.info(
            "[RULES] Rule %d -> %s/%s=%s (delivered=%s)",
            rule.id, dispatch.device_identifier, dispatch.component_token,
            dispatch.command, dispatch.delivered,
        )

    def _create_alert(self, db: Session, rule: AutomationRule, now) -> None:
        alert = Alert(
            title=rule.alert_title or DEFAULT_ALERT_TITLE,
            message=rule.alert_message or DEFAULT_ALERT_MESSAGE,
            severity=rule.alert_severity or DEFAULT_ALERT_SEVERITY,
            created_by=rule.created_by,
            created_at=now,
        )
        db.add(alert)
        logger.info("[RULES] Alert '%s' (%s) from rule %d", alert.title, alert.severity, rule.id)

    @property
    def stats(self) -> dict:
        return {
            "evaluations": self._evaluations,
            "triggered": self._triggered,
            "failed": self._failed,
        }
