"""Threshold-based scaling decisions with cooldown-protected execution."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Mapping, Set, Tuple

from tenacity import Retrying, before_sleep_log, retry_if_result, stop_after_attempt, wait_exponential

from ..actions import ActionExecutor
from ..clock import Clock, SystemClock
from ..config import ScalingConfig
from ..logs import get_logger
from ..metrics import MetricsAggregator
from ..models import ActionResult, RuleAction, ScalingActionResult, ScalingDecision
from ..utils import to_float

logger = get_logger("scaling")

SCALE_UP = "scale_up"
SCALE_DOWN = "scale_down"
NO_ACTION = "none"


class ScalingAdvisor:
    """Turns CPU / memory utilisation into scale_up, scale_down or none."""

    def __init__(
        self,
        config: ScalingConfig | None = None,
        action_executor: ActionExecutor | None = None,
        *,
        metrics: MetricsAggregator | None = None,
        clock: Clock | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config or ScalingConfig()
        self._sleep = sleep
        self._actions = action_executor or ActionExecutor()
        self._metrics = metrics
        self._clock = clock or SystemClock()
        self._last_action: Dict[str, float] = {}
        self._in_flight: Set[str] = set()
        self._lock = threading.Lock()

    @property
    def config(self) -> ScalingConfig:
        return self._config

    def decide(self, metrics: Mapping[str, Any]) -> ScalingDecision:
        cpu = to_float(metrics.get("cpu", metrics.get("cpu_usage")))
        memory = to_float(metrics.get("memory", metrics.get("memory_usage")))
        upper = self._config.upper_threshold
        lower = self._config.lower_threshold

        if cpu is None and memory is None:
            return ScalingDecision(NO_ACTION, cpu, memory, 0, "insufficient telemetry")
        if (cpu is not None and cpu > upper) or (memory is not None and memory > upper):
            return ScalingDecision(
                SCALE_UP,
                cpu,
                memory,
                self._config.scale_up_instances,
                f"utilisation above {upper:g}%",
            )
        if cpu is None or memory is None:
            return ScalingDecision(NO_ACTION, cpu, memory, 0, "insufficient telemetry")
        if cpu < lower and memory < lower:
            return ScalingDecision(
                SCALE_DOWN,
                cpu,
                memory,
                self._config.scale_down_instances,
                f"utilisation below {lower:g}%",
            )
        return ScalingDecision(NO_ACTION, cpu, memory, 0, "utilisation within bounds")

    def execute(self, decision: ScalingDecision) -> ScalingActionResult:
        if decision.action == NO_ACTION:
            return self._result(decision, "skipped", 0, decision.reason)

        with self._lock:
            if decision.action in self._in_flight:
                logger.info("Skipping %s: already in progress", decision.action)
                return self._result(decision, "cooldown", 0, f"{decision.action} already in progress")
            last = self._last_action.get(decision.action)
            now = self._clock.monotonic()
            if last is not None and now - last < self._config.cooldown_seconds:
                remaining = self._config.cooldown_seconds - (now - last)
                logger.info("Skipping %s: cooldown for another %.0fs", decision.action, remaining)
                return self._result(
                    decision,
                    "cooldown",
                    0,
                    f"{decision.action} in cooldown for another {remaining:.0f}s",
                )
            # Reserve the direction so concurrent callers see it as cooling down.
            self._in_flight.add(decision.action)

        succeeded = False
        try:
            result, attempts = self._dispatch(decision)
            succeeded = result.succeeded
        finally:
            with self._lock:
                if succeeded:
                    self._last_action[decision.action] = self._clock.monotonic()
                self._in_flight.discard(decision.action)

        if not succeeded:
            logger.warning("%s failed after %d attempt(s): %s", decision.action, attempts, result.detail)
            return self._result(decision, "failed", attempts, result.detail)
        if self._metrics is not None:
            self._metrics.increment("scaling_actions")
            self._metrics.increment("automated_actions")
        logger.info("Executed %s (+%d) on attempt %d", decision.action, decision.instances, attempts)
        return self._result(decision, "completed", attempts, result.detail)

    def _dispatch(self, decision: ScalingDecision) -> Tuple[ActionResult, int]:
        descriptor = RuleAction(
            type=decision.action,
            target=str(decision.instances),
            parameters={"instances": decision.instances, "reason": decision.reason},
        )
        attempts = 0

        def attempt() -> ActionResult:
            nonlocal attempts
            attempts += 1
            return self._actions.execute(descriptor, context={"origin": "scaling"})

        backoff = self._config.retry_backoff_seconds
        retrying = Retrying(
            sleep=self._sleep,
            stop=stop_after_attempt(self._config.max_attempts),
            wait=wait_exponential(multiplier=backoff, max=backoff * 8),
            retry=retry_if_result(_retryable),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            retry_error_callback=lambda state: state.outcome.result(),
        )
        result = retrying(attempt)
        return result, attempts

    def _result(
        self,
        decision: ScalingDecision,
        status: str,
        attempts: int,
        detail: str,
    ) -> ScalingActionResult:
        return ScalingActionResult(
            action=decision.action,
            status=status,
            instances=decision.instances if status == "completed" else 0,
            attempts=attempts,
            detail=detail,
            timestamp=self._clock.now(),
        )


def _retryable(result: ActionResult) -> bool:
    # Guard rejections are final.
    return not result.succeeded and result.status != "blocked"
