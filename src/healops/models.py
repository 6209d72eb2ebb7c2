"""Domain models for HealOps."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from .errors import ExecutionError

if TYPE_CHECKING:
    from .healing.conditions import Condition


RUN_RUNNING = "running"
RUN_COMPLETED = "completed"
RUN_FAILED = "failed"

STEP_COMPLETED = "completed"
STEP_FAILED = "failed"

PRIORITY_ORDER: Dict[str, int] = {"low": 0, "medium": 1, "high": 2, "critical": 3}


@dataclass(frozen=True)
class StepSpec:
    """Single ordered step of a workflow definition."""

    id: str
    action: str
    timeout_ms: int
    retry_count: int
    parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class WorkflowDefinition:
    """Registered workflow; the step tuple never changes after registration."""

    id: str
    name: str
    steps: Tuple[StepSpec, ...]
    description: str = ""
    schedule: Optional[str] = None
    triggers: Tuple[str, ...] = ()
    variables: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    status: str = "active"


@dataclass(frozen=True)
class RegistrationResult:
    workflow_id: str
    steps_count: int
    estimated_duration_ms: int


@dataclass(frozen=True)
class StepResult:
    """Outcome of one step after all attempts."""

    step_id: str
    action: str
    status: str
    start_time: datetime
    end_time: datetime
    duration_ms: int
    attempts: int
    output: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == STEP_COMPLETED


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    level: str
    message: str
    step_id: Optional[str] = None
    attempt: Optional[int] = None


@dataclass
class WorkflowRun:
    """Mutable record of one execution of a workflow definition."""

    id: str
    definition_id: str
    start_time: datetime
    input: Dict[str, Any] = field(default_factory=dict)
    # Event type that started the run; None for direct and scheduled runs.
    trigger: Optional[str] = None
    status: str = RUN_RUNNING
    end_time: Optional[datetime] = None
    current_step: Optional[str] = None
    step_results: List[StepResult] = field(default_factory=list)
    logs: List[LogEntry] = field(default_factory=list)
    error: Optional[str] = None
    cancel_requested: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.status != RUN_RUNNING

    def add_log(self, entry: LogEntry) -> None:
        self.logs.append(entry)

    def complete(self, at: datetime) -> None:
        self._finish(RUN_COMPLETED, at)

    def fail(self, at: datetime, error: str) -> None:
        self._finish(RUN_FAILED, at)
        self.error = error

    def _finish(self, status: str, at: datetime) -> None:
        if self.is_terminal:
            raise ExecutionError(f"Run {self.id} already finished with status {self.status}.")
        self.status = status
        self.end_time = at
        self.current_step = None


@dataclass(frozen=True)
class RunResult:
    """Caller-facing summary of a finished run."""

    run_id: str
    definition_id: str
    status: str
    start_time: datetime
    end_time: Optional[datetime]
    step_results: Tuple[StepResult, ...]
    duration_ms: int
    error: Optional[str] = None
    failed_step: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == RUN_COMPLETED


@dataclass
class Schedule:
    """Binding of a workflow to a recurrence expression."""

    id: str
    name: str
    workflow_id: str
    expression: str
    created_at: datetime
    next_run: Optional[datetime]
    enabled: bool = True
    last_run: Optional[datetime] = None
    max_retries: int = 3
    parameters: Dict[str, Any] = field(default_factory=dict)
    retry_attempt: int = 0
    last_error: Optional[str] = None


@dataclass(frozen=True)
class ScheduleFiring:
    schedule_id: str
    workflow_id: str
    fired_at: datetime
    status: str
    run_id: Optional[str] = None
    error: Optional[str] = None
    next_run: Optional[datetime] = None


@dataclass(frozen=True)
class RuleAction:
    """Action descriptor handed to the outbound action executor."""

    type: str
    target: str = ""
    parameters: Dict[str, Any] = field(default_factory=dict)


ActionDescriptor = RuleAction


@dataclass
class SelfHealingRule:
    id: str
    name: str
    condition: "Condition"
    actions: List[RuleAction]
    priority: str = "medium"
    enabled: bool = True

    @property
    def rank(self) -> int:
        return PRIORITY_ORDER.get(self.priority, 0)


@dataclass(frozen=True)
class HealingActionRecord:
    rule_id: str
    rule: str
    action: str
    target: str
    status: str
    detail: str
    timestamp: datetime


@dataclass(frozen=True)
class HealingReport:
    status: str
    issue: Dict[str, Any]
    rules_applied: int
    actions_executed: int
    actions_failed: int
    healing_actions: Tuple[HealingActionRecord, ...]
    estimated_recovery_time: int


@dataclass(frozen=True)
class Recommendation:
    category: str
    type: str
    priority: str
    action: str
    description: str
    timeframe: str


@dataclass(frozen=True)
class RiskAssessment:
    system: str
    scores: Dict[str, float]
    uncertainty: Dict[str, float]
    recommendations: Tuple[Recommendation, ...]
    maintenance_scheduled: bool
    confidence: float
    assessed_at: datetime


@dataclass(frozen=True)
class ScalingDecision:
    action: str
    cpu: Optional[float]
    memory: Optional[float]
    instances: int
    reason: str


@dataclass(frozen=True)
class ScalingActionResult:
    action: str
    status: str
    instances: int
    attempts: int
    detail: str
    timestamp: datetime


@dataclass(frozen=True)
class EscalationStep:
    level: str
    delay_seconds: int


@dataclass(frozen=True)
class NotificationRecord:
    channel: str
    status: str
    detail: str


@dataclass(frozen=True)
class ResolutionAttempt:
    action: str
    status: str
    detail: str


@dataclass(frozen=True)
class ProcessedAlert:
    id: str
    original: Dict[str, Any]
    severity: str
    category: str
    priority: str
    auto_resolution_eligible: bool
    escalation_path: Tuple[EscalationStep, ...]
    notification_channels: Tuple[str, ...]
    resolution: Optional[Dict[str, Any]]
    resolution_attempts: Tuple[ResolutionAttempt, ...]
    notifications: Tuple[NotificationRecord, ...]
    processed_at: datetime
    estimated_resolution_minutes: int


@dataclass(frozen=True)
class OptimizationCandidate:
    type: str
    action: str
    impact: str
    estimated_gain: float


@dataclass(frozen=True)
class OptimizationPlan:
    scope: Dict[str, Any]
    candidates: Tuple[OptimizationCandidate, ...]
    estimated_efficiency_gain: float
    estimated_duration_minutes: int


@dataclass(frozen=True)
class OptimizationOutcome:
    type: str
    action: str
    impact: str
    status: str
    estimated_gain: float
    actual_gain: float
    gain_source: str
    detail: str
    timestamp: datetime


@dataclass(frozen=True)
class OptimizationResult:
    scope: Dict[str, Any]
    plan: OptimizationPlan
    outcomes: Tuple[OptimizationOutcome, ...]
    total_improvements: int
    efficiency_gain: float
    efficiency_after: float
    timestamp: datetime


@dataclass
class AutomationPolicy:
    """Declarative automation policy; retired by disabling, never deleted."""

    id: str
    name: str
    rules: List[Dict[str, Any]]
    created_at: datetime
    description: str = ""
    conditions: List["Condition"] = field(default_factory=list)
    actions: List[RuleAction] = field(default_factory=list)
    events: Tuple[str, ...] = ()
    enabled: bool = True
    priority: str = "medium"
    trigger_count: int = 0
    last_triggered: Optional[datetime] = None


@dataclass(frozen=True)
class AutomationMetrics:
    total_workflows: int
    active_workflows: int
    completed_executions: int
    failed_executions: int
    active_executions: int
    self_healing_events: int
    automated_actions: int
    scaling_actions: int
    alerts_processed: int
    optimizations_run: int
    efficiency: float
    uptime: float
    predictive_accuracy: float
    last_optimization: Optional[datetime]
    total_policies: int
    active_policies: int
    scheduled_tasks: int
    self_healing_rules: int
    last_updated: datetime


@dataclass
class ActionResult:
    """Result of executing an action descriptor."""

    action_type: str
    status: str
    detail: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status in {"success", "simulated"}
