"""Self-healing rule store and the built-in rules."""

from __future__ import annotations

import threading
from typing import Any, Dict, Iterable, List, Mapping

from ..errors import NotFoundError, ValidationError
from ..models import PRIORITY_ORDER, RuleAction, SelfHealingRule
from ..utils import new_id
from .conditions import as_condition


def build_actions(raw_actions: Any) -> List[RuleAction]:
    if not isinstance(raw_actions, (list, tuple)):
        raise ValidationError("Actions must be a list.")
    actions: List[RuleAction] = []
    for raw in raw_actions:
        if isinstance(raw, RuleAction):
            actions.append(raw)
            continue
        if isinstance(raw, str):
            raw = {"type": raw}
        if not isinstance(raw, Mapping):
            raise ValidationError(f"Unsupported action entry: {raw!r}")
        action_type = str(raw.get("type") or "").strip()
        if not action_type:
            raise ValidationError("Every action needs a type.")
        parameters = raw.get("parameters") or {}
        if not isinstance(parameters, Mapping):
            raise ValidationError(f"Parameters for {action_type} must be an object.")
        actions.append(
            RuleAction(
                type=action_type,
                target=str(raw.get("target") or ""),
                parameters=dict(parameters),
            )
        )
    return actions


def build_rule(payload: Mapping[str, Any] | SelfHealingRule) -> SelfHealingRule:
    if isinstance(payload, SelfHealingRule):
        rule = payload
    else:
        if not isinstance(payload, Mapping):
            raise ValidationError("Rule payload must be an object.")
        name = str(payload.get("name") or "").strip()
        if not name:
            raise ValidationError("Rule name is required.")
        rule = SelfHealingRule(
            id=str(payload.get("id") or new_id("rule")),
            name=name,
            condition=as_condition(payload.get("condition")),
            actions=build_actions(payload.get("actions") or []),
            priority=str(payload.get("priority") or "medium").lower(),
            enabled=bool(payload.get("enabled", True)),
        )
    if rule.priority not in PRIORITY_ORDER:
        raise ValidationError(f"Unknown rule priority '{rule.priority}'.")
    if not rule.actions:
        raise ValidationError(f"Rule '{rule.name}' has no actions.")
    return rule


def default_rules() -> List[Dict[str, Any]]:
    return [
        {
            "id": "memory-leak-fix",
            "name": "Memory Leak Auto-Fix",
            "condition": "memory_usage > 90",
            "actions": [
                {"type": "restart_service", "target": "memory-intensive-service"},
                {"type": "clear_cache", "target": "system"},
                {"type": "notify_admin", "parameters": {"message": "Memory leak detected and fixed"}},
            ],
            "priority": "high",
        },
        {
            "id": "cpu-throttling",
            "name": "CPU Throttling Management",
            "condition": "cpu_usage > 95 for 5 minutes",
            "actions": [
                {"type": "scale_up", "parameters": {"instances": 2}},
                {"type": "prioritize_critical"},
                {"type": "alert_team", "parameters": {"severity": "high"}},
            ],
            "priority": "high",
        },
        {
            "id": "database-connection-recovery",
            "name": "Database Connection Recovery",
            "condition": "database_connections_failed > 10",
            "actions": [
                {"type": "restart_database", "target": "primary-db"},
                {"type": "switch_to_backup"},
                {"type": "notify_admin", "parameters": {"message": "Database recovery initiated"}},
            ],
            "priority": "critical",
        },
    ]


class RuleStore:
    """Holds self-healing rules in insertion order."""

    def __init__(self, rules: Iterable[Mapping[str, Any] | SelfHealingRule] | None = None) -> None:
        self._rules: Dict[str, SelfHealingRule] = {}
        self._lock = threading.Lock()
        for rule in rules or ():
            self.add(rule)

    def add(self, payload: Mapping[str, Any] | SelfHealingRule) -> SelfHealingRule:
        rule = build_rule(payload)
        with self._lock:
            if rule.id in self._rules:
                raise ValidationError(f"Rule '{rule.id}' already exists.")
            self._rules[rule.id] = rule
        return rule

    def get(self, rule_id: str) -> SelfHealingRule:
        with self._lock:
            rule = self._rules.get(rule_id)
        if rule is None:
            raise NotFoundError(f"Rule '{rule_id}' not found.")
        return rule

    def enable(self, rule_id: str) -> SelfHealingRule:
        rule = self.get(rule_id)
        with self._lock:
            rule.enabled = True
        return rule

    def disable(self, rule_id: str) -> SelfHealingRule:
        rule = self.get(rule_id)
        with self._lock:
            rule.enabled = False
        return rule

    def list(self) -> List[SelfHealingRule]:
        with self._lock:
            return list(self._rules.values())

    def enabled(self) -> List[SelfHealingRule]:
        return [rule for rule in self.list() if rule.enabled]

    def enabled_count(self) -> int:
        return len(self.enabled())

    def __len__(self) -> int:
        with self._lock:
            return len(self._rules)
