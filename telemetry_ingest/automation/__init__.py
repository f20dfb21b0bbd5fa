"""Automatización: reglas umbral, alertas y comandos a actuadores."""

from .engine import RuleEngine
from .rules import evaluate_condition, in_cooldown, parse_operator

__all__ = ["RuleEngine", "evaluate_condition", "in_cooldown", "parse_operator"]
