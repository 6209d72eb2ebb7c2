"""Step executor enforcing per-attempt deadlines and retry budgets."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import replace
from typing import Any, Callable, Dict

from ..clock import Clock, SystemClock
from ..errors import ExecutionTimeoutError
from ..logs import get_logger
from ..models import STEP_COMPLETED, STEP_FAILED, LogEntry, StepResult, StepSpec
from .handlers import StepActionRegistry, StepContext

logger = get_logger("steps")

# How often a queued attempt re-checks whether its future was cancelled.
_START_POLL_SECONDS = 0.05

LogSink = Callable[[LogEntry], None]


class StepExecutor:
    """Runs one step with its timeout and retry budget.

    Each attempt runs on a worker pool so the deadline can be enforced. The deadline
    starts when a worker picks the attempt up, so time spent queued behind other
    steps never counts. An attempt past its deadline is abandoned, not killed.
    Failures come back as a ``failed`` StepResult, never as an exception.
    """

    def __init__(
        self,
        handlers: StepActionRegistry | None = None,
        *,
        clock: Clock | None = None,
        max_workers: int = 16,
    ) -> None:
        self._handlers = handlers or StepActionRegistry()
        self._clock = clock or SystemClock()
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="healops-step")

    @property
    def handlers(self) -> StepActionRegistry:
        return self._handlers

    def run(
        self,
        step: StepSpec,
        context: StepContext,
        *,
        log: LogSink | None = None,
    ) -> StepResult:
        sink = log or (lambda entry: None)
        rendered = replace(step, parameters=context.render(dict(step.parameters)))
        handler = self._handlers.resolve(step.action)
        max_attempts = step.retry_count + 1
        start_time = self._clock.now()
        started = time.monotonic()
        error: str | None = None
        error_type: str | None = None

        for attempt in range(1, max_attempts + 1):
            began = threading.Event()
            future = self._pool.submit(_attempt, began, handler, rendered, context)
            while not began.wait(_START_POLL_SECONDS):
                if future.done():
                    break
            try:
                output = future.result(timeout=step.timeout_ms / 1000.0)
            except FutureTimeoutError:
                future.cancel()
                error_type = "timeout"
                error = str(
                    ExecutionTimeoutError(
                        f"Step '{step.id}' timed out after {step.timeout_ms} ms"
                    )
                )
            except Exception as exc:
                error_type = "execution"
                error = str(exc) or exc.__class__.__name__
            else:
                sink(
                    LogEntry(
                        timestamp=self._clock.now(),
                        level="info",
                        message=f"Step '{step.id}' ({step.action}) completed",
                        step_id=step.id,
                        attempt=attempt,
                    )
                )
                return self._result(
                    step,
                    STEP_COMPLETED,
                    start_time,
                    started,
                    attempt,
                    output=_as_output(output),
                )

            retrying = attempt < max_attempts
            sink(
                LogEntry(
                    timestamp=self._clock.now(),
                    level="error",
                    message=(
                        f"Step '{step.id}' attempt {attempt}/{max_attempts} failed: {error}"
                        + ("; retrying" if retrying else "")
                    ),
                    step_id=step.id,
                    attempt=attempt,
                )
            )
            logger.warning(
                "Step %s attempt %d/%d failed (%s): %s",
                step.id,
                attempt,
                max_attempts,
                error_type,
                error,
            )

        return self._result(
            step,
            STEP_FAILED,
            start_time,
            started,
            max_attempts,
            error=error,
            error_type=error_type,
        )

    def shutdown(self) -> None:
        self._pool.shutdown(wait=False, cancel_futures=True)

    def _result(
        self,
        step: StepSpec,
        status: str,
        start_time: Any,
        started: float,
        attempts: int,
        *,
        output: Dict[str, Any] | None = None,
        error: str | None = None,
        error_type: str | None = None,
    ) -> StepResult:
        return StepResult(
            step_id=step.id,
            action=step.action,
            status=status,
            start_time=start_time,
            end_time=self._clock.now(),
            duration_ms=int((time.monotonic() - started) * 1000),
            attempts=attempts,
            output=output or {},
            error=error,
            error_type=error_type,
        )


def _attempt(began: threading.Event, handler: Callable[..., Any], step: StepSpec, context: StepContext) -> Any:
    began.set()
    return handler(step, context)


def _as_output(value: Any) -> Dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, dict):
        return value
    return {"result": value}
