"""Repositorio de reglas y alertas."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from common.models import Alert, AutomationRule


def list_rules(db: Session, sensor_deployment_id: Optional[int] = None) -> list[AutomationRule]:
    stmt = select(AutomationRule)
    if sensor_deployment_id is not None:
        stmt = stmt.where(AutomationRule.sensor_deployment_id == sensor_deployment_id)
    stmt = stmt.order_by(AutomationRule.created_at.desc(), AutomationRule.id.desc())
    return list(db.execute(stmt).scalars().all())


def get_rule(db: Session, rule_id: int) -> Optional[AutomationRule]:
    return db.get(AutomationRule, rule_id)


def add_rule(db: Session, **fields) -> AutomationRule:
    rule = AutomationRule(**fields)
    db.add(rule)
    return rule


def delete_rule(db: Session, rule: AutomationRule) -> None:
    db.delete(rule)


def list_alerts(db: Session, limit: Optional[int] = None) -> list[Alert]:
    stmt = select(Alert).order_by(Alert.created_at.desc(), Alert.id.desc())
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(db.execute(stmt).scalars().all())
