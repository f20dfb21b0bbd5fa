"""Predicados de reglas de automatización: operadores y cooldown."""

from __future__ import annotations

import operator as op
from datetime import datetime, timedelta
from typing import Callable, Optional

from common.models import AutomationRule, ComparisonOperator

_SYMBOLS: dict[str, ComparisonOperator] = {
    ">": ComparisonOperator.GT,
    "<": ComparisonOperator.LT,
    ">=": ComparisonOperator.GTE,
    "≥": ComparisonOperator.GTE,
    "<=": ComparisonOperator.LTE,
    "≤": ComparisonOperator.LTE,
    "=": ComparisonOperator.EQ,
    "==": ComparisonOperator.EQ,
    "!=": ComparisonOperator.NEQ,
    "≠": ComparisonOperator.NEQ,
}

_COMPARATORS: dict[ComparisonOperator, Callable[[float, float], bool]] = {
    ComparisonOperator.GT: op.gt,
    ComparisonOperator.LT: op.lt,
    ComparisonOperator.GTE: op.ge,
    ComparisonOperator.LTE: op.le,
    ComparisonOperator.EQ: op.eq,
    ComparisonOperator.NEQ: op.ne,
}


def parse_operator(raw: Optional[str]) -> Optional[ComparisonOperator]:
    """``gt`` / ``>`` / ``≥`` ... → ComparisonOperator; None if unrecognized."""
    if raw is None:
        return None
    text = str(raw).strip()
    if text in _SYMBOLS:
        return _SYMBOLS[text]
    try:
        return ComparisonOperator(text.lower())
    except ValueError:
        return None


def evaluate_condition(value: float, operator: Optional[str], threshold: float) -> bool:
    """``value <operator> threshold``. Unknown operators never match."""
    parsed = parse_operator(operator)
    if parsed is None:
        return False
    return _COMPARATORS[parsed](value, threshold)


def cooldown_remaining(rule: AutomationRule, now: datetime) -> timedelta:
    if rule.last_triggered_at is None:
        return timedelta(0)
    window = timedelta(minutes=rule.cooldown_minutes or 0)
    remaining = rule.last_triggered_at + window - now
    return remaining if remaining > timedelta(0) else timedelta(0)


def in_cooldown(rule: AutomationRule, now: datetime) -> bool:
    return cooldown_remaining(rule, now) > timedelta(0)
