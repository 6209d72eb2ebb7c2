"""Deterministic failure-risk scoring from telemetry snapshots."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Tuple

from ..clock import Clock, SystemClock
from ..config import PredictiveConfig
from ..logs import get_logger
from ..models import Recommendation, RiskAssessment
from ..telemetry import TelemetrySource
from ..utils import to_float

logger = get_logger("predictive")


@dataclass(frozen=True)
class SignalSpec:
    """Maps one raw signal onto [0, 1]: ``(value - floor) / (ceiling - floor)``, clamped."""

    name: str
    floor: float
    ceiling: float
    weight: float

    def normalize(self, value: float) -> float:
        return _clamp((value - self.floor) / (self.ceiling - self.floor))


@dataclass(frozen=True)
class CategoryPolicy:
    category: str
    signals: Tuple[SignalSpec, ...]
    type: str
    priority: str
    action: str
    description: str
    timeframe: str


CATEGORIES: Tuple[CategoryPolicy, ...] = (
    CategoryPolicy(
        category="memory",
        signals=(
            SignalSpec("memory_usage", 50.0, 100.0, 0.6),
            SignalSpec("memory_growth_rate", 0.0, 5.0, 0.25),
            SignalSpec("swap_usage", 0.0, 100.0, 0.15),
        ),
        type="preventive",
        priority="high",
        action="memory_upgrade",
        description="Memory usage trending high, consider upgrade",
        timeframe="7-14 days",
    ),
    CategoryPolicy(
        category="disk",
        signals=(
            SignalSpec("disk_usage", 50.0, 100.0, 0.5),
            SignalSpec("disk_io_errors", 0.0, 10.0, 0.3),
            SignalSpec("disk_latency_ms", 10.0, 100.0, 0.2),
        ),
        type="preventive",
        priority="medium",
        action="disk_replacement",
        description="Disk health degrading, schedule replacement",
        timeframe="14-30 days",
    ),
    CategoryPolicy(
        category="network",
        signals=(
            SignalSpec("packet_loss", 0.0, 5.0, 0.4),
            SignalSpec("network_latency_ms", 50.0, 500.0, 0.3),
            SignalSpec("connection_failures", 0.0, 20.0, 0.3),
        ),
        type="optimization",
        priority="low",
        action="network_optimization",
        description="Network performance could be improved",
        timeframe="30-60 days",
    ),
)


class PredictiveMaintenanceAnalyzer:
    """Scores memory, disk and network risk and recommends maintenance.

    Scores never decrease when a signal worsens. A category with missing signals
    reports a higher uncertainty rather than a guessed value.
    """

    def __init__(
        self,
        config: PredictiveConfig | None = None,
        *,
        telemetry: TelemetrySource | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._config = config or PredictiveConfig()
        self._telemetry = telemetry
        self._clock = clock or SystemClock()

    def assess(self, snapshot: Mapping[str, Any] | None = None, *, system: str = "default") -> RiskAssessment:
        values = dict(snapshot or {})
        if not values and self._telemetry is not None:
            values = self._telemetry.snapshot()

        scores: Dict[str, float] = {}
        uncertainty: Dict[str, float] = {}
        recommendations: List[Recommendation] = []
        for policy in CATEGORIES:
            score, missing = _score(policy, values)
            scores[policy.category] = score
            uncertainty[policy.category] = round(missing / len(policy.signals), 4)
            if missing == len(policy.signals):
                recommendations.append(
                    Recommendation(
                        category=policy.category,
                        type="telemetry",
                        priority="low",
                        action="collect_telemetry",
                        description=f"No {policy.category} telemetry available; risk cannot be assessed",
                        timeframe="immediate",
                    )
                )
                continue
            if score >= self._threshold(policy.category):
                critical = score >= self._config.critical_threshold
                recommendations.append(
                    Recommendation(
                        category=policy.category,
                        type=policy.type,
                        priority="critical" if critical else policy.priority,
                        action=policy.action,
                        description=policy.description,
                        timeframe="0-3 days" if critical else policy.timeframe,
                    )
                )

        coverage = [1.0 - value for value in uncertainty.values()]
        confidence = round(self._config.baseline_accuracy * sum(coverage) / len(coverage), 2)
        scheduled = any(item.action != "collect_telemetry" for item in recommendations)
        if scheduled:
            logger.info("Maintenance recommended for %s: %s", system, scores)
        return RiskAssessment(
            system=system,
            scores=scores,
            uncertainty=uncertainty,
            recommendations=tuple(recommendations),
            maintenance_scheduled=scheduled,
            confidence=confidence,
            assessed_at=self._clock.now(),
        )

    def _threshold(self, category: str) -> float:
        return {
            "memory": self._config.memory_threshold,
            "disk": self._config.disk_threshold,
            "network": self._config.network_threshold,
        }[category]


def _score(policy: CategoryPolicy, values: Mapping[str, Any]) -> Tuple[float, int]:
    weighted = 0.0
    weight_total = 0.0
    missing = 0
    for spec in policy.signals:
        value = to_float(values.get(spec.name))
        if value is None:
            missing += 1
            continue
        weighted += spec.weight * spec.normalize(value)
        weight_total += spec.weight
    if not weight_total:
        return 0.0, missing
    return round(_clamp(weighted / weight_total), 4), missing


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))
