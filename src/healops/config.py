"""Environment / .env configuration for the HealOps engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Optional, TypeVar

from dotenv import load_dotenv

from .errors import ValidationError
from .logs import parse_level

_PROJECT_ROOT = Path(__file__).resolve().parents[2]
_ENV_PATH = _PROJECT_ROOT / ".env"

T = TypeVar("T")


@dataclass
class WorkflowConfig:
    average_step_duration_ms: int = 2000
    default_step_timeout_ms: int = 30000
    default_retry_count: int = 3
    max_concurrent_runs: int = 8
    max_step_workers: int = 16
    run_history_limit: int = 200


@dataclass
class SchedulerConfig:
    poll_interval_seconds: float = 5.0
    retry_backoff_seconds: float = 2.0
    default_max_retries: int = 3


@dataclass
class HealingConfig:
    recovery_seconds_per_action: int = 30


@dataclass
class PredictiveConfig:
    memory_threshold: float = 0.7
    disk_threshold: float = 0.6
    network_threshold: float = 0.5
    critical_threshold: float = 0.9
    baseline_accuracy: float = 94.2


@dataclass
class ScalingConfig:
    upper_threshold: float = 80.0
    lower_threshold: float = 20.0
    scale_up_instances: int = 2
    scale_down_instances: int = 1
    cooldown_seconds: float = 300.0
    evaluation_interval_seconds: float = 300.0
    max_attempts: int = 3
    retry_backoff_seconds: float = 1.0

    def __post_init__(self) -> None:
        if self.lower_threshold >= self.upper_threshold:
            raise ValidationError(
                "Scaling lower threshold must be below the upper threshold "
                f"({self.lower_threshold} >= {self.upper_threshold})."
            )
        if self.max_attempts < 1:
            raise ValidationError("Scaling max_attempts must be at least 1.")
        if self.retry_backoff_seconds < 0:
            raise ValidationError("Scaling retry_backoff_seconds cannot be negative.")


@dataclass
class AlertingConfig:
    escalation_delays: Dict[str, int] = field(
        default_factory=lambda: {"team": 300, "manager": 900, "director": 3600}
    )
    base_resolution_minutes: int = 15

    def __post_init__(self) -> None:
        delays = list(self.escalation_delays.values())
        if not delays:
            raise ValidationError("At least one escalation level is required.")
        for earlier, later in zip(delays, delays[1:]):
            if later <= earlier:
                raise ValidationError("Escalation delays must be strictly increasing.")


@dataclass
class MetricsConfig:
    initial_efficiency: float = 98.5
    initial_uptime: float = 99.9


@dataclass
class IntegrationConfig:
    action_executor_url: Optional[str] = None
    prometheus_url: Optional[str] = None
    slack_webhook_url: Optional[str] = None
    request_timeout_seconds: float = 10.0


@dataclass
class ApiConfig:
    host: str = "127.0.0.1"
    port: int = 8002
    reload: bool = False
    log_level: str = "info"


@dataclass
class HealOpsConfig:
    workflow: WorkflowConfig = field(default_factory=WorkflowConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    healing: HealingConfig = field(default_factory=HealingConfig)
    predictive: PredictiveConfig = field(default_factory=PredictiveConfig)
    scaling: ScalingConfig = field(default_factory=ScalingConfig)
    alerting: AlertingConfig = field(default_factory=AlertingConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    integrations: IntegrationConfig = field(default_factory=IntegrationConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    log_level: str = "INFO"


def _env(name: str, default: T, cast: Callable[[str], T]) -> T:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError as exc:
        raise ValidationError(f"Invalid value for {name}: {raw!r}") from exc


def _flag(value: str) -> bool:
    return value.lower() in {"1", "true", "yes", "on"}


def _log_level(value: str) -> str:
    parse_level(value)
    return value.upper()


def _optional(name: str) -> Optional[str]:
    value = (os.getenv(name) or "").strip()
    return value or None


def load_config(env_path: Path | None = None) -> HealOpsConfig:
    """Build the engine configuration from ``.env`` and ``HEALOPS_*`` variables."""

    # .env is optional; existing environment variables win.
    load_dotenv(env_path or _ENV_PATH, override=False)

    workflow = WorkflowConfig(
        average_step_duration_ms=_env("HEALOPS_AVG_STEP_DURATION_MS", 2000, int),
        default_step_timeout_ms=_env("HEALOPS_STEP_TIMEOUT_MS", 30000, int),
        default_retry_count=_env("HEALOPS_STEP_RETRY_COUNT", 3, int),
        max_concurrent_runs=_env("HEALOPS_MAX_CONCURRENT_RUNS", 8, int),
        max_step_workers=_env("HEALOPS_MAX_STEP_WORKERS", 16, int),
        run_history_limit=_env("HEALOPS_RUN_HISTORY_LIMIT", 200, int),
    )
    scheduler = SchedulerConfig(
        poll_interval_seconds=_env("HEALOPS_SCHEDULER_POLL_SECONDS", 5.0, float),
        retry_backoff_seconds=_env("HEALOPS_SCHEDULER_BACKOFF_SECONDS", 2.0, float),
        default_max_retries=_env("HEALOPS_SCHEDULER_MAX_RETRIES", 3, int),
    )
    healing = HealingConfig(
        recovery_seconds_per_action=_env("HEALOPS_RECOVERY_SECONDS_PER_ACTION", 30, int),
    )
    predictive = PredictiveConfig(
        memory_threshold=_env("HEALOPS_RISK_MEMORY_THRESHOLD", 0.7, float),
        disk_threshold=_env("HEALOPS_RISK_DISK_THRESHOLD", 0.6, float),
        network_threshold=_env("HEALOPS_RISK_NETWORK_THRESHOLD", 0.5, float),
        critical_threshold=_env("HEALOPS_RISK_CRITICAL_THRESHOLD", 0.9, float),
        baseline_accuracy=_env("HEALOPS_BASELINE_ACCURACY", 94.2, float),
    )
    scaling = ScalingConfig(
        upper_threshold=_env("HEALOPS_SCALE_UP_THRESHOLD", 80.0, float),
        lower_threshold=_env("HEALOPS_SCALE_DOWN_THRESHOLD", 20.0, float),
        scale_up_instances=_env("HEALOPS_SCALE_UP_INSTANCES", 2, int),
        scale_down_instances=_env("HEALOPS_SCALE_DOWN_INSTANCES", 1, int),
        cooldown_seconds=_env("HEALOPS_SCALE_COOLDOWN_SECONDS", 300.0, float),
        evaluation_interval_seconds=_env("HEALOPS_SCALE_EVALUATION_SECONDS", 300.0, float),
        max_attempts=_env("HEALOPS_SCALE_MAX_ATTEMPTS", 3, int),
        retry_backoff_seconds=_env("HEALOPS_SCALE_RETRY_BACKOFF_SECONDS", 1.0, float),
    )
    alerting = AlertingConfig(
        escalation_delays={
            "team": _env("HEALOPS_ESCALATE_TEAM_SECONDS", 300, int),
            "manager": _env("HEALOPS_ESCALATE_MANAGER_SECONDS", 900, int),
            "director": _env("HEALOPS_ESCALATE_DIRECTOR_SECONDS", 3600, int),
        },
        base_resolution_minutes=_env("HEALOPS_BASE_RESOLUTION_MINUTES", 15, int),
    )
    metrics = MetricsConfig(
        initial_efficiency=_env("HEALOPS_INITIAL_EFFICIENCY", 98.5, float),
        initial_uptime=_env("HEALOPS_INITIAL_UPTIME", 99.9, float),
    )
    integrations = IntegrationConfig(
        action_executor_url=_optional("HEALOPS_ACTION_EXECUTOR_URL"),
        prometheus_url=_optional("HEALOPS_PROMETHEUS_URL"),
        slack_webhook_url=_optional("HEALOPS_SLACK_WEBHOOK_URL"),
        request_timeout_seconds=_env("HEALOPS_REQUEST_TIMEOUT_SECONDS", 10.0, float),
    )
    api = ApiConfig(
        host=os.getenv("HEALOPS_API_HOST", "127.0.0.1"),
        port=_env("HEALOPS_API_PORT", 8002, int),
        reload=_env("HEALOPS_API_RELOAD", False, _flag),
        log_level=os.getenv("HEALOPS_API_LOG_LEVEL", "info"),
    )
    return HealOpsConfig(
        workflow=workflow,
        scheduler=scheduler,
        healing=healing,
        predictive=predictive,
        scaling=scaling,
        alerting=alerting,
        metrics=metrics,
        integrations=integrations,
        api=api,
        log_level=_env("HEALOPS_LOG_LEVEL", "INFO", _log_level),
    )
