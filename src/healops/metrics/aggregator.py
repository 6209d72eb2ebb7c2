"""Automation metrics backed by prometheus_client collectors."""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Dict, Mapping, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest

from ..clock import Clock, SystemClock
from ..config import MetricsConfig, PredictiveConfig
from ..models import AutomationMetrics

COUNTER_NAMES = (
    "completed_executions",
    "failed_executions",
    "self_healing_events",
    "automated_actions",
    "scaling_actions",
    "alerts_processed",
    "optimizations_run",
    "healing_actions",
    "healing_actions_failed",
)

GAUGE_NAMES = (
    "total_workflows",
    "active_workflows",
    "active_executions",
    "total_policies",
    "active_policies",
    "scheduled_tasks",
    "self_healing_rules",
)

_PREFIX = "healops"


class MetricsAggregator:
    """Counters and level gauges for the engine.

    Each instance owns a private ``CollectorRegistry`` so several engines can coexist
    in one process. Reading a snapshot never mutates state.
    """

    def __init__(
        self,
        config: MetricsConfig | None = None,
        *,
        predictive: PredictiveConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        config = config or MetricsConfig()
        predictive = predictive or PredictiveConfig()
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()
        self.registry = CollectorRegistry(auto_describe=True)
        self._counters: Dict[str, Counter] = {
            name: Counter(
                f"{_PREFIX}_{name}",
                f"HealOps {name.replace('_', ' ')}",
                registry=self.registry,
            )
            for name in COUNTER_NAMES
        }
        self._efficiency = Gauge(
            f"{_PREFIX}_efficiency_percent", "Automation efficiency", registry=self.registry
        )
        self._uptime = Gauge(f"{_PREFIX}_uptime_percent", "Service uptime", registry=self.registry)
        self._accuracy = Gauge(
            f"{_PREFIX}_predictive_accuracy_percent",
            "Predictive maintenance accuracy",
            registry=self.registry,
        )
        self._levels = Gauge(
            f"{_PREFIX}_level",
            "Current size of engine collections",
            ["kind"],
            registry=self.registry,
        )
        self._efficiency.set(min(100.0, config.initial_efficiency))
        self._uptime.set(config.initial_uptime)
        self._accuracy.set(predictive.baseline_accuracy)
        self._last_optimization: Optional[datetime] = None
        self._last_updated = self._clock.now()

    def increment(self, name: str, amount: int = 1) -> None:
        if name not in self._counters:
            raise KeyError(f"Unknown metric counter: {name}")
        if amount < 0:
            raise ValueError("Counters only move forward.")
        if amount == 0:
            return
        with self._lock:
            self._counters[name].inc(amount)
            self._last_updated = self._clock.now()

    def value(self, name: str) -> int:
        sample = self.registry.get_sample_value(f"{_PREFIX}_{name}_total")
        return int(sample or 0)

    @property
    def efficiency(self) -> float:
        return float(self.registry.get_sample_value(f"{_PREFIX}_efficiency_percent") or 0.0)

    def add_efficiency(self, gain: float) -> float:
        """Fold an optimization gain into efficiency, capped at 100."""

        with self._lock:
            current = self.efficiency
            updated = round(min(100.0, current + max(0.0, gain)), 4)
            self._efficiency.set(updated)
            self._last_updated = self._clock.now()
            return updated

    def mark_optimization(self, at: datetime) -> None:
        with self._lock:
            self._last_optimization = at
            self._last_updated = self._clock.now()

    def snapshot(self, gauges: Mapping[str, int] | None = None) -> AutomationMetrics:
        levels = {name: int((gauges or {}).get(name, 0)) for name in GAUGE_NAMES}
        for name, level in levels.items():
            self._levels.labels(kind=name).set(level)
        return AutomationMetrics(
            total_workflows=levels["total_workflows"],
            active_workflows=levels["active_workflows"],
            completed_executions=self.value("completed_executions"),
            failed_executions=self.value("failed_executions"),
            active_executions=levels["active_executions"],
            self_healing_events=self.value("self_healing_events"),
            automated_actions=self.value("automated_actions"),
            scaling_actions=self.value("scaling_actions"),
            alerts_processed=self.value("alerts_processed"),
            optimizations_run=self.value("optimizations_run"),
            efficiency=self.efficiency,
            uptime=float(self.registry.get_sample_value(f"{_PREFIX}_uptime_percent") or 0.0),
            predictive_accuracy=float(
                self.registry.get_sample_value(f"{_PREFIX}_predictive_accuracy_percent") or 0.0
            ),
            last_optimization=self._last_optimization,
            total_policies=levels["total_policies"],
            active_policies=levels["active_policies"],
            scheduled_tasks=levels["scheduled_tasks"],
            self_healing_rules=levels["self_healing_rules"],
            last_updated=self._last_updated,
        )

    def exposition(self) -> bytes:
        """Render the registry in the Prometheus text format."""

        return generate_latest(self.registry)
