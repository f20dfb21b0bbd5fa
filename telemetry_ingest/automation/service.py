"""Automation API: CRUD de reglas y consulta de alertas.

Capa delgada sobre el repositorio; valida referencias que pydantic no
puede ver (categoría del deployment sensor/actuador) y levanta
InvalidParameter / NotFound hacia el caller.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Union

from pydantic import ValidationError
from sqlalchemy.orm import Session

from common.models import (
    Alert,
    AutomationActionType,
    AutomationRule,
    ComponentCategory,
    ComponentDeployment,
    utcnow,
)

from ..errors import InvalidParameter, NotFound
from ..schemas import RuleCreate, RuleUpdate
from . import repository as repo

logger = logging.getLogger(__name__)

_REQUIRED_FIELDS = (
    "name",
    "sensor_deployment_id",
    "operator",
    "threshold_value",
    "action_type",
    "is_active",
    "cooldown_minutes",
)


def _parse(model, data):
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidParameter(str(e)) from e


def _require_deployment(db: Session, deployment_id: int, category: ComponentCategory, role: str) -> ComponentDeployment:
    deployment = db.get(ComponentDeployment, deployment_id)
    if deployment is None:
        raise InvalidParameter(f"{role} deployment {deployment_id} does not exist")
    if deployment.category != category.value:
        raise InvalidParameter(
            f"{role} deployment {deployment_id} is a {deployment.category}, expected {category.value}"
        )
    return deployment


def _check_references(db: Session, fields: dict[str, Any]) -> None:
    _require_deployment(db, fields["sensor_deployment_id"], ComponentCategory.SENSOR, "Sensor")
    if fields["action_type"] == AutomationActionType.TRIGGER_ACTUATOR.value:
        target_id = fields.get("target_deployment_id")
        if target_id is None:
            raise InvalidParameter("trigger_actuator rules require target_deployment_id")
        _require_deployment(db, target_id, ComponentCategory.ACTUATOR, "Target")


def _enum_values(fields: dict[str, Any]) -> dict[str, Any]:
    for key in ("operator", "action_type"):
        if key in fields and fields[key] is not None:
            fields[key] = getattr(fields[key], "value", fields[key])
    return fields


def list_rules(db: Session, sensor_deployment_id: Optional[int] = None) -> list[AutomationRule]:
    return repo.list_rules(db, sensor_deployment_id)


def get_rule(db: Session, rule_id: int) -> AutomationRule:
    rule = repo.get_rule(db, rule_id)
    if rule is None:
        raise NotFound(f"Rule {rule_id} not found")
    return rule


def create_rule(db: Session, data: Union[RuleCreate, dict]) -> AutomationRule:
    payload = _parse(RuleCreate, data)
    fields = _enum_values(payload.model_dump())
    _check_references(db, fields)

    rule = repo.add_rule(db, **fields)
    db.commit()
    db.refresh(rule)
    logger.info("[AUTOMATION] Created rule %d '%s'", rule.id, rule.name)
    return rule


def update_rule(db: Session, rule_id: int, data: Union[RuleUpdate, dict]) -> AutomationRule:
    payload = _parse(RuleUpdate, data)
    rule = get_rule(db, rule_id)

    changes = _enum_values(payload.model_dump(exclude_unset=True))
    cleared = sorted(k for k in _REQUIRED_FIELDS if k in changes and changes[k] is None)
    if cleared:
        raise InvalidParameter(f"Fields cannot be null: {', '.join(cleared)}")
    merged = {
        "sensor_deployment_id": changes.get("sensor_deployment_id", rule.sensor_deployment_id),
        "action_type": changes.get("action_type", rule.action_type),
        "target_deployment_id": changes.get("target_deployment_id", rule.target_deployment_id),
    }
    _check_references(db, merged)

    for key, value in changes.items():
        setattr(rule, key, value)
    rule.updated_at = utcnow()
    db.commit()
    db.refresh(rule)
    logger.info("[AUTOMATION] Updated rule %d (%s)", rule.id, ", ".join(sorted(changes)) or "no changes")
    return rule


def delete_rule(db: Session, rule_id: int) -> None:
    rule = get_rule(db, rule_id)
    repo.delete_rule(db, rule)
    db.commit()
    logger.info("[AUTOMATION] Deleted rule %d", rule_id)


def set_rule_active(db: Session, rule_id: int, is_active: bool) -> AutomationRule:
    rule = get_rule(db, rule_id)
    rule.is_active = is_active
    rule.updated_at = utcnow()
    db.commit()
    db.refresh(rule)
    logger.info("[AUTOMATION] Rule %d %s", rule_id, "activated" if is_active else "deactivated")
    return rule


def list_alerts(db: Session, limit: Optional[int] = None) -> list[Alert]:
    return repo.list_alerts(db, limit)
