"""Self-healing rules, their condition language and the reaction engine."""

from .conditions import Condition, as_condition
from .engine import WORKFLOW_ACTION, SelfHealingEngine
from .rules import RuleStore, build_actions, build_rule, default_rules

__all__ = [
    "Condition",
    "as_condition",
    "WORKFLOW_ACTION",
    "SelfHealingEngine",
    "RuleStore",
    "build_actions",
    "build_rule",
    "default_rules",
]
