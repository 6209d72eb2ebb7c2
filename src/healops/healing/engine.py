"""Self-healing engine: match issue context against rules and run their actions."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping

from ..actions import ActionExecutor
from ..clock import Clock, SystemClock
from ..config import HealingConfig
from ..logs import get_logger
from ..metrics import MetricsAggregator
from ..models import HealingActionRecord, HealingReport, RuleAction, SelfHealingRule
from .rules import RuleStore

logger = get_logger("healing")

WORKFLOW_ACTION = "run_workflow"

WorkflowRunner = Callable[[str, Mapping[str, Any]], Any]


class SelfHealingEngine:
    """Applies every enabled matching rule, most urgent priority first.

    Rules of equal priority keep their store order. A failing action is recorded
    and the remaining actions still run.
    """

    def __init__(
        self,
        rules: RuleStore,
        action_executor: ActionExecutor | None = None,
        *,
        workflow_runner: WorkflowRunner | None = None,
        config: HealingConfig | None = None,
        metrics: MetricsAggregator | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._rules = rules
        self._actions = action_executor or ActionExecutor()
        self._workflow_runner = workflow_runner
        self._config = config or HealingConfig()
        self._metrics = metrics
        self._clock = clock or SystemClock()

    @property
    def rules(self) -> RuleStore:
        return self._rules

    def matching_rules(self, issue: Mapping[str, Any]) -> List[SelfHealingRule]:
        matched: List[SelfHealingRule] = []
        for rule in self._rules.enabled():
            try:
                if rule.condition.evaluate(issue):
                    matched.append(rule)
            except Exception:
                logger.exception("Condition for rule %s could not be evaluated", rule.id)
        # sorted() is stable, so equal priorities keep store order.
        return sorted(matched, key=lambda rule: rule.rank, reverse=True)

    def react(self, issue: Mapping[str, Any]) -> HealingReport:
        issue = dict(issue)
        rules = self.matching_rules(issue)
        if not rules:
            logger.info("No self-healing rule matched issue %s", _describe(issue))
            return HealingReport(
                status="no_rules_found",
                issue=issue,
                rules_applied=0,
                actions_executed=0,
                actions_failed=0,
                healing_actions=(),
                estimated_recovery_time=0,
            )

        records: List[HealingActionRecord] = []
        for rule in rules:
            logger.info("Applying self-healing rule %s (%s)", rule.id, rule.priority)
            for action in rule.actions:
                records.append(self._run_action(rule, action, issue))

        failed = sum(1 for record in records if record.status not in {"success", "simulated"})
        if self._metrics is not None:
            self._metrics.increment("self_healing_events")
            self._metrics.increment("automated_actions", len(records))
            self._metrics.increment("healing_actions", len(records))
            self._metrics.increment("healing_actions_failed", failed)
        return HealingReport(
            status="healing_applied",
            issue=issue,
            rules_applied=len(rules),
            actions_executed=len(records),
            actions_failed=failed,
            healing_actions=tuple(records),
            estimated_recovery_time=len(records) * self._config.recovery_seconds_per_action,
        )

    def _run_action(
        self,
        rule: SelfHealingRule,
        action: RuleAction,
        issue: Dict[str, Any],
    ) -> HealingActionRecord:
        if action.type == WORKFLOW_ACTION:
            status, detail = self._run_workflow(action, issue)
        else:
            result = self._actions.execute(
                action,
                context={"origin": "self_healing", "rule_id": rule.id},
            )
            status, detail = result.status, result.detail
        if status not in {"success", "simulated"}:
            logger.warning("Healing action %s for rule %s ended %s: %s", action.type, rule.id, status, detail)
        return HealingActionRecord(
            rule_id=rule.id,
            rule=rule.name,
            action=action.type,
            target=action.target,
            status=status,
            detail=detail,
            timestamp=self._clock.now(),
        )

    def _run_workflow(self, action: RuleAction, issue: Dict[str, Any]) -> tuple[str, str]:
        if self._workflow_runner is None:
            return "skipped", "No workflow runner configured."
        try:
            result = self._workflow_runner(action.target, {**issue, **action.parameters})
        except Exception as exc:
            logger.exception("Healing workflow %s could not run", action.target)
            return "failed", str(exc) or exc.__class__.__name__
        if getattr(result, "succeeded", False):
            return "success", f"Workflow {action.target} completed (run {result.run_id})."
        return "failed", f"Workflow {action.target} failed: {getattr(result, 'error', 'unknown error')}"


def _describe(issue: Mapping[str, Any]) -> str:
    return ", ".join(f"{key}={value}" for key, value in sorted(issue.items(), key=lambda kv: kv[0])) or "{}"
