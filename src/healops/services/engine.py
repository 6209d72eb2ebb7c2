"""Engine facade wiring stores, executors and engines behind one command surface."""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, Iterable, List, Mapping

from ..actions import (
    ActionClient,
    ActionExecutor,
    ActionRegistry,
    HttpActionClient,
    SafetyGuard,
    SimulatedActionClient,
    SlackNotificationClient,
)
from ..alerting import AlertTriageProcessor
from ..clock import Clock, SystemClock
from ..config import HealOpsConfig
from ..errors import IntegrationError, ValidationError
from ..events import EngineEvent, EventBus
from ..healing import RuleStore, SelfHealingEngine, default_rules
from ..logs import configure_logging, get_logger
from ..metrics import MetricsAggregator
from ..models import (
    AutomationMetrics,
    HealingReport,
    OptimizationResult,
    ProcessedAlert,
    RegistrationResult,
    RiskAssessment,
    RunResult,
    WorkflowRun,
)
from ..optimization import OptimizationPlanner
from ..policies import PolicyStore
from ..predictive import PredictiveMaintenanceAnalyzer
from ..scaling import ScalingAdvisor
from ..scheduling import ScheduleExpression, Scheduler
from ..telemetry import PrometheusClient, PrometheusTelemetrySource, StaticTelemetrySource, TelemetrySource
from ..workflows import (
    RunHandle,
    StepActionRegistry,
    StepExecutor,
    WorkflowRegistry,
    WorkflowRunCoordinator,
    default_workflows,
)

logger = get_logger("engine")

CAPABILITIES = (
    "workflow_automation",
    "scheduled_automation",
    "self_healing",
    "predictive_maintenance",
    "automated_scaling",
    "intelligent_alerting",
    "autonomous_optimization",
    "automation_policies",
    "health_monitoring",
)

WORKFLOW_SUCCESS_THRESHOLD = 95.0
HEALING_EFFECTIVENESS_THRESHOLD = 90.0


class AutomationEngine:
    """Single in-process authority for workflows, healing, scaling, alerts and policies."""

    def __init__(
        self,
        config: HealOpsConfig | None = None,
        *,
        clock: Clock | None = None,
        action_clients: Iterable[ActionClient] | None = None,
        fallback_client: ActionClient | None = None,
        safety_guard: SafetyGuard | None = None,
        telemetry: TelemetrySource | None = None,
        load_defaults: bool = True,
    ) -> None:
        self.config = config or HealOpsConfig()
        self.clock = clock or SystemClock()
        configure_logging(self.config.log_level)
        integrations = self.config.integrations

        self.events = EventBus()
        self.metrics = MetricsAggregator(
            self.config.metrics,
            predictive=self.config.predictive,
            clock=self.clock,
        )

        if fallback_client is None:
            if integrations.action_executor_url:
                fallback_client = HttpActionClient(
                    base_url=integrations.action_executor_url,
                    timeout=integrations.request_timeout_seconds,
                )
            else:
                fallback_client = SimulatedActionClient()
        registry = ActionRegistry(action_clients, fallback=fallback_client)
        if integrations.slack_webhook_url and registry.get("notify_slack") is fallback_client:
            registry.register(
                SlackNotificationClient(
                    webhook_url=integrations.slack_webhook_url,
                    timeout=integrations.request_timeout_seconds,
                )
            )
        self.actions = ActionExecutor(registry, safety_guard)

        if telemetry is None:
            if integrations.prometheus_url:
                telemetry = PrometheusTelemetrySource(
                    integrations.prometheus_url,
                    client=PrometheusClient(timeout=integrations.request_timeout_seconds),
                )
            else:
                telemetry = StaticTelemetrySource()
        self.telemetry = telemetry

        self.workflows = WorkflowRegistry(self.config.workflow, clock=self.clock)
        self.step_executor = StepExecutor(
            StepActionRegistry(self.actions, telemetry=self.telemetry),
            clock=self.clock,
            max_workers=max(1, self.config.workflow.max_step_workers),
        )
        self.runs = WorkflowRunCoordinator(
            self.workflows,
            self.step_executor,
            config=self.config.workflow,
            metrics=self.metrics,
            events=self.events,
            clock=self.clock,
        )
        self.scheduler = Scheduler(
            self.runs,
            self.workflows,
            config=self.config.scheduler,
            clock=self.clock,
        )
        self.rules = RuleStore(default_rules() if load_defaults else ())
        self.healing = SelfHealingEngine(
            self.rules,
            self.actions,
            workflow_runner=self.runs.execute,
            config=self.config.healing,
            metrics=self.metrics,
            clock=self.clock,
        )
        self.predictive = PredictiveMaintenanceAnalyzer(
            self.config.predictive,
            telemetry=self.telemetry,
            clock=self.clock,
        )
        self.scaling = ScalingAdvisor(
            self.config.scaling,
            self.actions,
            metrics=self.metrics,
            clock=self.clock,
        )
        self.alerts = AlertTriageProcessor(
            self.config.alerting,
            self.actions,
            metrics=self.metrics,
            clock=self.clock,
        )
        self.optimizer = OptimizationPlanner(self.actions, metrics=self.metrics, clock=self.clock)
        self.policies = PolicyStore(clock=self.clock)
        # Latest outcome per component, reported by health_check.
        self._component_status: Dict[str, str] = {}

        self.events.subscribe(self.policies.observe)
        self.events.subscribe(self._route_triggers)

        if load_defaults:
            for definition in default_workflows():
                self.create_workflow(definition)

    # Lifecycle

    def start(self) -> None:
        self.scheduler.start()

    def stop(self) -> None:
        self.scheduler.stop()

    def shutdown(self) -> None:
        self.stop()
        self.runs.shutdown()

    # Workflows

    def create_workflow(self, definition: Mapping[str, Any]) -> RegistrationResult:
        built = self.workflows.build_definition(definition)
        if built.schedule:
            # Reject a bad schedule before the workflow becomes visible.
            ScheduleExpression.parse(built.schedule)
        result = self.workflows.register(built)
        if built.schedule:
            self.scheduler.schedule(result.workflow_id, built.schedule, name=f"{result.workflow_id} schedule")
        self._publish("workflow.created", {"workflow_id": result.workflow_id})
        return result

    def execute_workflow(self, workflow_id: str, input: Mapping[str, Any] | None = None) -> RunResult:
        return self.runs.execute(workflow_id, input)

    def submit_workflow(self, workflow_id: str, input: Mapping[str, Any] | None = None) -> RunHandle:
        return self.runs.submit(workflow_id, input)

    def get_run(self, run_id: str) -> WorkflowRun:
        return self.runs.get_run(run_id)

    def cancel_run(self, run_id: str) -> bool:
        return self.runs.cancel(run_id)

    def schedule_automation(self, config: Mapping[str, Any]) -> Dict[str, Any]:
        workflow_id = config.get("workflow_id") or config.get("workflowId")
        expression = config.get("schedule") or config.get("expression")
        if not workflow_id:
            raise ValidationError("workflow_id is required.")
        if not expression:
            raise ValidationError("schedule is required.")
        schedule = self.scheduler.schedule(
            str(workflow_id),
            str(expression),
            name=config.get("name"),
            parameters=config.get("parameters"),
            max_retries=config.get("max_retries"),
            enabled=bool(config.get("enabled", True)),
        )
        return {
            "schedule_id": schedule.id,
            "workflow_id": schedule.workflow_id,
            "next_run": schedule.next_run,
            "status": "scheduled" if schedule.enabled else "disabled",
        }

    # Self-healing / predictive / scaling / alerting / optimization

    def report_issue(self, issue: Mapping[str, Any]) -> HealingReport:
        report = self.healing.react(issue)
        self._publish(
            "issue.reported",
            {"status": report.status, "rules_applied": report.rules_applied},
            signals=dict(issue),
        )
        return report

    def assess_system(
        self,
        snapshot: Mapping[str, Any] | None = None,
        *,
        system: str = "default",
    ) -> RiskAssessment:
        assessment = self.predictive.assess(snapshot, system=system)
        signals: Dict[str, Any] = {f"{name}_risk": score for name, score in assessment.scores.items()}
        self._publish(
            "system.assessed",
            {"system": system, "maintenance_scheduled": assessment.maintenance_scheduled},
            signals=signals,
        )
        return assessment

    def submit_scaling_metrics(self, metrics: Mapping[str, Any]) -> Dict[str, Any]:
        decision = self.scaling.decide(metrics)
        actions = [] if decision.action == "none" else [self.scaling.execute(decision)]
        if actions:
            self._component_status["automated_scaling"] = "fail" if actions[0].status == "failed" else "pass"
        now = self.clock.now()
        self._publish("scaling.evaluated", {"action": decision.action}, signals=dict(metrics))
        return {
            "decision": decision,
            "actions": actions,
            "timestamp": now,
            "next_evaluation": now + timedelta(seconds=self.config.scaling.evaluation_interval_seconds),
        }

    def submit_alert(self, alert: Mapping[str, Any]) -> ProcessedAlert:
        processed = self.alerts.process(alert)
        undelivered = [n.channel for n in processed.notifications if n.status == "failed"]
        self._component_status["intelligent_alerting"] = "warn" if undelivered else "pass"
        self._publish(
            "alert.processed",
            {"alert_id": processed.id, "resolved": processed.resolution is not None},
            signals={
                **processed.original,
                "severity": processed.severity,
                "category": processed.category,
                "priority": processed.priority,
            },
        )
        return processed

    def request_optimization(self, scope: Mapping[str, Any] | None = None) -> OptimizationResult:
        plan = self.optimizer.plan(scope)
        result = self.optimizer.execute(plan)
        failed = [o.action for o in result.outcomes if o.status == "failed"]
        self._component_status["autonomous_optimization"] = "warn" if failed else "pass"
        self._publish(
            "optimization.completed",
            {"improvements": result.total_improvements},
            signals={"efficiency_gain": result.efficiency_gain, "efficiency": result.efficiency_after},
        )
        return result

    # Policies / metrics / health

    def create_policy(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self.policies.create(payload)

    def get_metrics(self) -> AutomationMetrics:
        return self.metrics.snapshot(
            {
                "total_workflows": len(self.workflows),
                "active_workflows": self.workflows.active_count(),
                "active_executions": self.runs.active_count(),
                "total_policies": len(self.policies.list()),
                "active_policies": self.policies.active_count(),
                "scheduled_tasks": self.scheduler.enabled_count(),
                "self_healing_rules": self.rules.enabled_count(),
            }
        )

    def health_check(self) -> Dict[str, Any]:
        checks = {
            "workflow_engine": "pass" if len(self.workflows) else "warn",
            "scheduler": "pass" if self.scheduler.running else "warn",
            "self_healing": "pass" if self.rules.enabled_count() else "warn",
            "predictive_maintenance": self._telemetry_check(),
            "automated_scaling": self._component_status.get("automated_scaling", "pass"),
            "intelligent_alerting": self._component_status.get("intelligent_alerting", "pass"),
            "autonomous_optimization": self._component_status.get("autonomous_optimization", "pass"),
        }
        metrics = self.get_metrics()
        return {
            "status": "degraded" if "fail" in checks.values() else "healthy",
            "checks": checks,
            "metrics": metrics,
            "uptime": metrics.uptime,
        }

    def monitor_automation_health(self, system: str = "default") -> Dict[str, Any]:
        metrics = self.get_metrics()
        workflow_success = _percentage(
            metrics.completed_executions,
            metrics.completed_executions + metrics.failed_executions,
        )
        healing_total = self.metrics.value("healing_actions")
        effectiveness = _percentage(
            healing_total - self.metrics.value("healing_actions_failed"),
            healing_total,
        )
        issues: List[str] = []
        recommendations: List[str] = []
        if workflow_success < WORKFLOW_SUCCESS_THRESHOLD:
            issues.append("Low workflow success rate detected")
            recommendations.append("Review and optimize workflow definitions")
        if effectiveness < HEALING_EFFECTIVENESS_THRESHOLD:
            issues.append("Self-healing effectiveness below threshold")
            recommendations.append("Update self-healing rules and conditions")
        return {
            "system": system,
            "status": "degraded" if issues else "healthy",
            "metrics": {
                "workflow_success": workflow_success,
                "self_healing_effectiveness": effectiveness,
                "automation_efficiency": metrics.efficiency,
                "predictive_accuracy": metrics.predictive_accuracy,
            },
            "issues": issues,
            "recommendations": recommendations,
            "last_checked": self.clock.now(),
        }

    def capabilities(self) -> Dict[str, Any]:
        return {
            "service": "HealOps automation engine",
            "capabilities": list(CAPABILITIES),
            "step_actions": self.step_executor.handlers.names(),
            "action_clients": self.actions.registry.action_types(),
        }

    # Internals

    def _telemetry_check(self) -> str:
        try:
            snapshot = self.telemetry.snapshot()
        except IntegrationError as exc:
            logger.warning("Telemetry health check failed: %s", exc)
            return "fail"
        return "pass" if snapshot else "warn"

    def _publish(
        self,
        event_type: str,
        payload: Mapping[str, Any],
        *,
        signals: Mapping[str, Any] | None = None,
    ) -> None:
        self.events.publish(
            EngineEvent(
                type=event_type,
                payload=dict(payload),
                timestamp=self.clock.now(),
                signals=dict(signals or {}),
            )
        )

    def _route_triggers(self, event: EngineEvent) -> None:
        if event.type == "run.finished" and event.payload.get("trigger"):
            # Completions of event-triggered runs never trigger further runs.
            return
        for definition in self.workflows.with_trigger(event.type):
            if event.payload.get("workflow_id") == definition.id:
                continue
            handle = self.runs.submit(
                definition.id,
                {"event_type": event.type, **event.signals},
                trigger=event.type,
            )
            logger.info("Event %s triggered workflow %s (run %s)", event.type, definition.id, handle.run_id)


def _percentage(part: int, total: int) -> float:
    if total <= 0:
        return 100.0
    return round(part * 100.0 / total, 2)
