"""Optimization planning and execution."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from ..actions import ActionExecutor
from ..clock import Clock, SystemClock
from ..logs import get_logger
from ..metrics import MetricsAggregator
from ..models import (
    OptimizationCandidate,
    OptimizationOutcome,
    OptimizationPlan,
    OptimizationResult,
    RuleAction,
)
from ..utils import to_float

logger = get_logger("optimization")

IMPACT_WEIGHTS: Dict[str, float] = {"low": 0.25, "medium": 0.35, "high": 0.45}
MINUTES_PER_CANDIDATE = 15


@dataclass(frozen=True)
class CatalogEntry:
    """Candidate template selected when ``applies(scope)`` holds."""

    candidate: OptimizationCandidate
    applies: Callable[[Mapping[str, Any]], bool]


def _below(signal: str, limit: float) -> Callable[[Mapping[str, Any]], bool]:
    def _check(scope: Mapping[str, Any]) -> bool:
        value = to_float(scope.get(signal))
        return value is not None and value < limit

    return _check


def _above(signal: str, limit: float) -> Callable[[Mapping[str, Any]], bool]:
    def _check(scope: Mapping[str, Any]) -> bool:
        value = to_float(scope.get(signal))
        return value is not None and value > limit

    return _check


CACHE = OptimizationCandidate("performance", "cache_optimization", "medium", 5.0)
MEMORY = OptimizationCandidate("resource", "memory_optimization", "high", 15.0)

DEFAULT_CATALOG: Tuple[CatalogEntry, ...] = (
    CatalogEntry(CACHE, _below("cache_hit_rate", 0.8)),
    CatalogEntry(MEMORY, _above("memory_usage", 70.0)),
    CatalogEntry(
        OptimizationCandidate("performance", "query_optimization", "medium", 10.0),
        _above("query_latency_ms", 200.0),
    ),
    CatalogEntry(
        OptimizationCandidate("resource", "cpu_rebalancing", "low", 8.0),
        _above("cpu_usage", 70.0),
    ),
)

_SIGNALS = ("cache_hit_rate", "memory_usage", "query_latency_ms", "cpu_usage")


def weighted_gain(candidates: Iterable[Tuple[OptimizationCandidate, float]]) -> float:
    return round(sum(gain * IMPACT_WEIGHTS.get(c.impact, 0.0) for c, gain in candidates), 4)


class OptimizationPlanner:
    """Builds optimization plans from scope signals and executes them."""

    def __init__(
        self,
        action_executor: ActionExecutor | None = None,
        *,
        catalog: Iterable[CatalogEntry] | None = None,
        metrics: MetricsAggregator | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._actions = action_executor or ActionExecutor()
        self._catalog = tuple(DEFAULT_CATALOG if catalog is None else catalog)
        self._metrics = metrics
        self._clock = clock or SystemClock()

    def plan(self, scope: Mapping[str, Any] | None = None) -> OptimizationPlan:
        scope = dict(scope or {})
        if any(signal in scope for signal in _SIGNALS):
            candidates = [entry.candidate for entry in self._catalog if entry.applies(scope)]
        else:
            candidates = [CACHE, MEMORY]
        types = scope.get("types")
        if types:
            wanted = {types} if isinstance(types, str) else set(types)
            candidates = [c for c in candidates if c.type in wanted or c.action in wanted]
        return OptimizationPlan(
            scope=scope,
            candidates=tuple(candidates),
            estimated_efficiency_gain=weighted_gain((c, c.estimated_gain) for c in candidates),
            estimated_duration_minutes=len(candidates) * MINUTES_PER_CANDIDATE,
        )

    def execute(self, plan: OptimizationPlan) -> OptimizationResult:
        outcomes: List[OptimizationOutcome] = []
        for candidate in plan.candidates:
            result = self._actions.execute(
                RuleAction(
                    type=candidate.action,
                    target=str(plan.scope.get("target") or "system"),
                    parameters={"type": candidate.type, "impact": candidate.impact},
                ),
                context={"origin": "optimization"},
            )
            actual, source = _actual_gain(candidate, result.succeeded, result.metadata.get("actual_gain"))
            outcomes.append(
                OptimizationOutcome(
                    type=candidate.type,
                    action=candidate.action,
                    impact=candidate.impact,
                    status="completed" if result.succeeded else "failed",
                    estimated_gain=candidate.estimated_gain,
                    actual_gain=actual,
                    gain_source=source,
                    detail=result.detail,
                    timestamp=self._clock.now(),
                )
            )

        gain = weighted_gain(
            (OptimizationCandidate(o.type, o.action, o.impact, o.estimated_gain), o.actual_gain)
            for o in outcomes
        )
        now = self._clock.now()
        if self._metrics is not None:
            efficiency = self._metrics.add_efficiency(gain)
            self._metrics.mark_optimization(now)
            self._metrics.increment("optimizations_run")
            self._metrics.increment("automated_actions", len(outcomes))
        else:
            efficiency = gain
        completed = sum(1 for outcome in outcomes if outcome.status == "completed")
        logger.info("Optimization applied %d/%d actions (gain %.2f)", completed, len(outcomes), gain)
        return OptimizationResult(
            scope=plan.scope,
            plan=plan,
            outcomes=tuple(outcomes),
            total_improvements=completed,
            efficiency_gain=gain,
            efficiency_after=efficiency,
            timestamp=now,
        )


def _actual_gain(
    candidate: OptimizationCandidate,
    succeeded: bool,
    reported: Optional[Any],
) -> Tuple[float, str]:
    if not succeeded:
        return 0.0, "failed"
    measured = to_float(reported)
    if measured is not None:
        return max(0.0, measured), "measured"
    return candidate.estimated_gain, "estimated"
