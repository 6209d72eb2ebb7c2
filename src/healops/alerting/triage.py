"""Alert triage: classification, auto-resolution, escalation and notification."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..actions import ActionExecutor
from ..clock import Clock, SystemClock
from ..config import AlertingConfig
from ..logs import get_logger
from ..metrics import MetricsAggregator
from ..models import (
    EscalationStep,
    NotificationRecord,
    ProcessedAlert,
    ResolutionAttempt,
    RuleAction,
)
from ..utils import new_id, to_float

logger = get_logger("alerting")

SEVERITIES = ("low", "medium", "high", "critical")

SEVERITY_ALIASES: Dict[str, str] = {
    "critical": "critical",
    "fatal": "critical",
    "page": "critical",
    "emergency": "critical",
    "high": "high",
    "error": "high",
    "major": "high",
    "medium": "medium",
    "warning": "medium",
    "warn": "medium",
    "moderate": "medium",
    "low": "low",
    "info": "low",
    "minor": "low",
}

SEVERITY_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("critical", ("outage", "down", "breach", "data loss", "unreachable")),
    ("high", ("failed", "failure", "error", "exhausted")),
    ("medium", ("degraded", "slow", "latency", "elevated")),
)

CATEGORY_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("security", ("security", "unauthorized", "breach", "intrusion", "malware", "vulnerab", "login")),
    ("availability", ("outage", "down", "unreachable", "unavailable", "health check", "crash")),
    ("capacity", ("disk", "storage", "memory", "quota", "capacity", "full")),
    ("performance", ("latency", "slow", "cpu", "response time", "throughput")),
)

CATEGORIES = ("security", "availability", "capacity", "performance")

ESCALATION_RUNGS: Dict[str, int] = {"critical": 3, "high": 3, "medium": 2, "low": 1}

NOTIFICATION_CHANNELS: Dict[str, Tuple[str, ...]] = {
    "critical": ("slack", "email", "sms", "webhook"),
    "high": ("slack", "email", "sms"),
    "medium": ("slack", "email"),
    "low": ("email",),
}

RESOLUTION_WEIGHTS: Dict[str, int] = {"low": 1, "medium": 2, "high": 3, "urgent": 4}


@dataclass(frozen=True)
class ResolutionPolicy:
    """Alerts of ``category`` at one of ``severities`` may be auto-resolved with ``action``."""

    category: str
    severities: FrozenSet[str]
    action: str
    target: str = ""


def default_resolution_policies() -> List[ResolutionPolicy]:
    return [
        ResolutionPolicy("performance", frozenset({"low", "medium"}), "clear_cache", "system"),
        ResolutionPolicy("capacity", frozenset({"low", "medium"}), "cleanup_storage", "system"),
        ResolutionPolicy("availability", frozenset({"low"}), "restart_service"),
    ]


def classify_severity(alert: Mapping[str, Any]) -> str:
    label = str(alert.get("severity") or "").strip().lower()
    if label in SEVERITY_ALIASES:
        return SEVERITY_ALIASES[label]
    value = to_float(alert.get("value"))
    threshold = to_float(alert.get("threshold"))
    if value is not None and threshold:
        ratio = value / threshold
        if ratio >= 1.5:
            return "critical"
        if ratio >= 1.2:
            return "high"
        if ratio >= 1.0:
            return "medium"
        return "low"
    text = _alert_text(alert)
    for severity, keywords in SEVERITY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return severity
    return "low"


def classify_category(alert: Mapping[str, Any]) -> str:
    explicit = str(alert.get("category") or "").strip().lower()
    if explicit in CATEGORIES:
        return explicit
    text = _alert_text(alert)
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category
    return "performance"


def priority_for(severity: str, category: str) -> str:
    if severity == "critical":
        return "urgent"
    if severity == "high":
        return "urgent" if category in {"security", "availability"} else "high"
    if severity == "medium":
        return "high" if category == "security" else "medium"
    return "low"


def _alert_text(alert: Mapping[str, Any]) -> str:
    parts = [alert.get(key) for key in ("name", "title", "message", "description", "metric")]
    return " ".join(str(part) for part in parts if part).lower()


class AlertTriageProcessor:
    """Classifies alerts and drives resolution or escalation.

    Classification is a pure function of the alert fields. Security alerts are
    never auto-resolved, and an alert only carries a resolution when the
    resolution action actually succeeded.
    """

    def __init__(
        self,
        config: AlertingConfig | None = None,
        action_executor: ActionExecutor | None = None,
        *,
        policies: Iterable[ResolutionPolicy] | None = None,
        metrics: MetricsAggregator | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._config = config or AlertingConfig()
        self._actions = action_executor or ActionExecutor()
        self._policies = list(default_resolution_policies() if policies is None else policies)
        self._metrics = metrics
        self._clock = clock or SystemClock()

    def resolution_policy(self, severity: str, category: str) -> Optional[ResolutionPolicy]:
        if category == "security":
            return None
        for policy in self._policies:
            if policy.category == category and severity in policy.severities:
                return policy
        return None

    def escalation_path(self, severity: str) -> Tuple[EscalationStep, ...]:
        rungs = ESCALATION_RUNGS.get(severity, 1)
        levels = list(self._config.escalation_delays.items())[:rungs]
        return tuple(EscalationStep(level=level, delay_seconds=delay) for level, delay in levels)

    def process(self, raw_alert: Mapping[str, Any]) -> ProcessedAlert:
        alert = dict(raw_alert)
        alert_id = str(alert.get("id") or new_id("alert"))
        severity = classify_severity(alert)
        category = classify_category(alert)
        priority = priority_for(severity, category)
        policy = self.resolution_policy(severity, category)

        attempts: List[ResolutionAttempt] = []
        resolution: Optional[Dict[str, Any]] = None
        if policy is not None:
            descriptor = RuleAction(
                type=policy.action,
                target=str(alert.get("target") or alert.get("service") or policy.target),
                parameters={"alert_id": alert_id, "category": category},
            )
            result = self._actions.execute(descriptor, context={"origin": "alerting"})
            attempts.append(ResolutionAttempt(action=policy.action, status=result.status, detail=result.detail))
            if result.succeeded:
                resolution = {
                    "action": policy.action,
                    "status": result.status,
                    "detail": result.detail,
                    "resolved_at": self._clock.now(),
                }
            else:
                logger.warning("Auto-resolution %s failed for alert %s: %s", policy.action, alert_id, result.detail)

        escalation: Tuple[EscalationStep, ...] = ()
        channels: Tuple[str, ...] = ()
        notifications: List[NotificationRecord] = []
        if resolution is None:
            escalation = self.escalation_path(severity)
            channels = NOTIFICATION_CHANNELS.get(severity, ("email",))
            notifications = self._notify(alert, alert_id, severity, channels)

        if self._metrics is not None:
            self._metrics.increment("alerts_processed")
            self._metrics.increment("automated_actions", len(attempts) + len(notifications))

        logger.info(
            "Alert %s triaged: severity=%s category=%s priority=%s resolved=%s",
            alert_id,
            severity,
            category,
            priority,
            resolution is not None,
        )
        return ProcessedAlert(
            id=alert_id,
            original=alert,
            severity=severity,
            category=category,
            priority=priority,
            auto_resolution_eligible=policy is not None,
            escalation_path=escalation,
            notification_channels=channels,
            resolution=resolution,
            resolution_attempts=tuple(attempts),
            notifications=tuple(notifications),
            processed_at=self._clock.now(),
            estimated_resolution_minutes=(
                0
                if resolution is not None
                else self._config.base_resolution_minutes * RESOLUTION_WEIGHTS[priority]
            ),
        )

    def _notify(
        self,
        alert: Mapping[str, Any],
        alert_id: str,
        severity: str,
        channels: Sequence[str],
    ) -> List[NotificationRecord]:
        title = alert.get("name") or alert.get("title") or alert.get("message") or alert_id
        records: List[NotificationRecord] = []
        for channel in channels:
            result = self._actions.execute(
                RuleAction(
                    type=f"notify_{channel}",
                    target=channel,
                    parameters={
                        "alert_id": alert_id,
                        "severity": severity,
                        "message": f"[{severity.upper()}] {title}",
                    },
                ),
                context={"origin": "alerting"},
            )
            records.append(NotificationRecord(channel=channel, status=result.status, detail=result.detail))
        return records
