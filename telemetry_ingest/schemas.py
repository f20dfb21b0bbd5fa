from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from common.models import AutomationActionType, ComparisonOperator

from .automation.rules import parse_operator


def _coerce_operator(v):
    if v is None or isinstance(v, ComparisonOperator):
        return v
    parsed = parse_operator(v)
    if parsed is None:
        raise ValueError(f"Unsupported operator '{v}'")
    return parsed


class RuleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    sensor_deployment_id: int = Field(..., ge=1)
    # gt/lt/gte/lte/eq/neq or >, <, >=, ≥, <=, ≤, =, ==, !=, ≠
    operator: ComparisonOperator
    threshold_value: float
    action_type: AutomationActionType
    alert_title: Optional[str] = Field(default=None, max_length=200)
    alert_message: Optional[str] = None
    alert_severity: Optional[str] = Field(default=None, max_length=20)
    target_deployment_id: Optional[int] = Field(default=None, ge=1)
    actuator_command: Optional[str] = Field(default=None, max_length=100)
    actuator_parameters: Optional[Dict[str, Any]] = None
    is_active: bool = True
    cooldown_minutes: int = Field(default=5, ge=0)
    created_by: Optional[int] = None

    @field_validator("operator", mode="before")
    @classmethod
    def normalize_operator(cls, v):
        return _coerce_operator(v)


class RuleUpdate(BaseModel):
    """Partial update; only fields explicitly sent are applied."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    sensor_deployment_id: Optional[int] = Field(default=None, ge=1)
    operator: Optional[ComparisonOperator] = None
    threshold_value: Optional[float] = None
    action_type: Optional[AutomationActionType] = None
    alert_title: Optional[str] = Field(default=None, max_length=200)
    alert_message: Optional[str] = None
    alert_severity: Optional[str] = Field(default=None, max_length=20)
    target_deployment_id: Optional[int] = Field(default=None, ge=1)
    actuator_command: Optional[str] = Field(default=None, max_length=100)
    actuator_parameters: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None
    cooldown_minutes: Optional[int] = Field(default=None, ge=0)

    @field_validator("operator", mode="before")
    @classmethod
    def normalize_operator(cls, v):
        return _coerce_operator(v)


class HealthGroup(BaseModel):
    total: int
    online: int
    offline: int
    score: float


class SystemHealth(BaseModel):
    status: str
    score: float
    devices: HealthGroup
    sensors: HealthGroup
    actuators: HealthGroup
    checked_at: datetime
    issues: List[str] = Field(default_factory=list)
