"""Automation policy store."""

from __future__ import annotations

import threading
from typing import Any, Dict, List, Mapping

from ..clock import Clock, SystemClock
from ..errors import NotFoundError, ValidationError
from ..events import EngineEvent
from ..healing.conditions import Condition, as_condition
from ..healing.rules import build_actions
from ..logs import get_logger
from ..models import PRIORITY_ORDER, AutomationPolicy, RuleAction
from ..utils import new_id

logger = get_logger("policies")


def estimate_impact(rules_count: int, actions_count: int, priority: str) -> int:
    """Deterministic 1-10 impact estimate."""

    raw = 3 + 1.5 * rules_count + 0.5 * actions_count + PRIORITY_ORDER.get(priority, 1)
    return int(max(1, min(10, round(raw))))


class PolicyStore:
    """Owns automation policies.

    Policies are never deleted; ``disable`` is the retirement path. Trigger
    bookkeeping is serialized per policy.
    """

    def __init__(self, *, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._policies: Dict[str, AutomationPolicy] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def create(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        policy = self._build(payload)
        with self._lock:
            if policy.id in self._policies:
                raise ValidationError(f"Policy '{policy.id}' already exists.")
            self._policies[policy.id] = policy
            self._locks[policy.id] = threading.Lock()
        logger.info("Created policy %s with %d rules", policy.id, len(policy.rules))
        return {
            "policy_id": policy.id,
            "status": "created",
            "rules_count": len(policy.rules),
            "estimated_impact": estimate_impact(len(policy.rules), len(policy.actions), policy.priority),
        }

    def get(self, policy_id: str) -> AutomationPolicy:
        with self._lock:
            policy = self._policies.get(policy_id)
        if policy is None:
            raise NotFoundError(f"Policy '{policy_id}' not found.")
        return policy

    def list(self) -> List[AutomationPolicy]:
        with self._lock:
            return list(self._policies.values())

    def enable(self, policy_id: str) -> AutomationPolicy:
        return self._set_enabled(policy_id, True)

    def disable(self, policy_id: str) -> AutomationPolicy:
        return self._set_enabled(policy_id, False)

    def active_count(self) -> int:
        return sum(1 for policy in self.list() if policy.enabled)

    def observe(self, event: EngineEvent) -> List[str]:
        """Record a trigger on every enabled policy whose filter and conditions match."""

        context = {**event.payload, **event.signals}
        triggered: List[str] = []
        for policy in self.list():
            if not policy.enabled:
                continue
            if policy.events and event.type not in policy.events:
                continue
            if not all(condition.evaluate(context) for condition in policy.conditions):
                continue
            with self._locks[policy.id]:
                policy.trigger_count += 1
                policy.last_triggered = self._clock.now()
            triggered.append(policy.id)
        return triggered

    def _set_enabled(self, policy_id: str, enabled: bool) -> AutomationPolicy:
        policy = self.get(policy_id)
        with self._locks[policy_id]:
            policy.enabled = enabled
        return policy

    def _build(self, payload: Mapping[str, Any]) -> AutomationPolicy:
        if not isinstance(payload, Mapping):
            raise ValidationError("Policy payload must be an object.")
        name = str(payload.get("name") or "").strip()
        if not name:
            raise ValidationError("Policy name is required.")
        rules = payload.get("rules")
        if not isinstance(rules, list) or not rules:
            raise ValidationError("Policy rules must be a non-empty list.")
        priority = str(payload.get("priority") or "medium").lower()
        if priority not in PRIORITY_ORDER:
            raise ValidationError(f"Unknown policy priority '{priority}'.")

        conditions: List[Condition] = []
        actions: List[RuleAction] = []
        normalized: List[Dict[str, Any]] = []
        for index, rule in enumerate(rules):
            if not isinstance(rule, Mapping):
                raise ValidationError(f"Policy rule #{index} must be an object.")
            if rule.get("condition") is not None:
                conditions.append(as_condition(rule["condition"]))
            actions.extend(build_actions(rule.get("actions") or []))
            normalized.append(dict(rule))
        for extra in payload.get("conditions") or []:
            conditions.append(as_condition(extra))
        actions.extend(build_actions(payload.get("actions") or []))

        events = payload.get("events") or ()
        if isinstance(events, str):
            events = (events,)
        return AutomationPolicy(
            id=str(payload.get("id") or new_id("policy")),
            name=name,
            description=str(payload.get("description") or ""),
            rules=normalized,
            conditions=conditions,
            actions=actions,
            events=tuple(str(event) for event in events),
            enabled=bool(payload.get("enabled", True)),
            priority=priority,
            created_at=self._clock.now(),
        )
