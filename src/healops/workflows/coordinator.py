"""Workflow run coordinator: ordered, fail-fast execution of registered workflows."""

from __future__ import annotations

import threading
from collections import OrderedDict, deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Any, Deque, Dict, List, Mapping

from ..clock import Clock, SystemClock
from ..config import WorkflowConfig
from ..errors import NotFoundError
from ..events import EngineEvent, EventBus
from ..logs import get_logger
from ..metrics import MetricsAggregator
from ..models import (
    RUN_COMPLETED,
    LogEntry,
    RunResult,
    StepResult,
    WorkflowDefinition,
    WorkflowRun,
)
from ..utils import new_id
from .handlers import StepContext
from .registry import WorkflowRegistry
from .steps import StepExecutor

logger = get_logger("runs")

CANCELLED_MESSAGE = "Run cancelled"


@dataclass(frozen=True)
class RunHandle:
    """Reference to a run submitted to the worker pool."""

    run_id: str
    future: "Future[RunResult]"

    def result(self, timeout: float | None = None) -> RunResult:
        return self.future.result(timeout=timeout)


class WorkflowRunCoordinator:
    """Creates runs and drives their steps strictly in order.

    The first failed step fails the run; later steps are never started.
    Cancellation is observed between steps.
    """

    def __init__(
        self,
        registry: WorkflowRegistry,
        step_executor: StepExecutor | None = None,
        *,
        config: WorkflowConfig | None = None,
        metrics: MetricsAggregator | None = None,
        events: EventBus | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._registry = registry
        self._config = config or WorkflowConfig()
        self._clock = clock or SystemClock()
        self._steps = step_executor or StepExecutor(clock=self._clock)
        self._metrics = metrics
        self._events = events
        self._runs: "OrderedDict[str, WorkflowRun]" = OrderedDict()
        self._finished: Deque[str] = deque()
        self._lock = threading.RLock()
        self._pool = ThreadPoolExecutor(
            max_workers=max(1, self._config.max_concurrent_runs),
            thread_name_prefix="healops-run",
        )

    def execute(
        self,
        definition_id: str,
        input: Mapping[str, Any] | None = None,
        *,
        trigger: str | None = None,
    ) -> RunResult:
        """Run a workflow on the calling thread and return its summary."""

        definition = self._registry.get(definition_id)
        run = self._start(definition, input, trigger)
        return self._drive(definition, run)

    def submit(
        self,
        definition_id: str,
        input: Mapping[str, Any] | None = None,
        *,
        trigger: str | None = None,
    ) -> RunHandle:
        """Queue a workflow on the run worker pool."""

        definition = self._registry.get(definition_id)
        run = self._start(definition, input, trigger)
        future = self._pool.submit(self._drive, definition, run)
        return RunHandle(run_id=run.id, future=future)

    def cancel(self, run_id: str) -> bool:
        with self._lock:
            run = self._runs.get(run_id)
            if run is None:
                raise NotFoundError(f"Run '{run_id}' not found.")
            if run.is_terminal:
                return False
            run.cancel_requested = True
        logger.info("Cancellation requested for run %s", run_id)
        return True

    def get_run(self, run_id: str) -> WorkflowRun:
        with self._lock:
            run = self._runs.get(run_id)
            if run is None:
                raise NotFoundError(f"Run '{run_id}' not found.")
            return replace(run, step_results=list(run.step_results), logs=list(run.logs))

    def list_runs(self) -> List[WorkflowRun]:
        with self._lock:
            return [
                replace(run, step_results=list(run.step_results), logs=list(run.logs))
                for run in self._runs.values()
            ]

    def active_count(self) -> int:
        with self._lock:
            return sum(1 for run in self._runs.values() if not run.is_terminal)

    def shutdown(self, wait: bool = False) -> None:
        self._pool.shutdown(wait=wait)
        self._steps.shutdown()

    def _start(
        self,
        definition: WorkflowDefinition,
        input: Mapping[str, Any] | None,
        trigger: str | None = None,
    ) -> WorkflowRun:
        run = WorkflowRun(
            id=new_id("run"),
            definition_id=definition.id,
            start_time=self._clock.now(),
            input=dict(input or {}),
            trigger=trigger,
        )
        with self._lock:
            self._runs[run.id] = run
        logger.info("Started run %s for workflow %s", run.id, definition.id)
        return run

    def _drive(self, definition: WorkflowDefinition, run: WorkflowRun) -> RunResult:
        context = StepContext(
            run_id=run.id,
            workflow_id=definition.id,
            variables={**definition.variables, **run.input},
        )
        failed_step: str | None = None
        try:
            for step in definition.steps:
                with self._lock:
                    if run.cancel_requested:
                        self._log(run, "warning", CANCELLED_MESSAGE)
                        run.fail(self._clock.now(), CANCELLED_MESSAGE)
                        break
                    run.current_step = step.id
                result = self._steps.run(step, context, log=lambda entry: self._append(run, entry))
                with self._lock:
                    run.step_results.append(result)
                if not result.succeeded:
                    failed_step = step.id
                    with self._lock:
                        run.fail(self._clock.now(), _failure_message(result))
                    break
                context.outputs[step.id] = result.output
            else:
                with self._lock:
                    run.complete(self._clock.now())
        except Exception as exc:
            logger.exception("Run %s aborted", run.id)
            with self._lock:
                if not run.is_terminal:
                    run.fail(self._clock.now(), str(exc) or exc.__class__.__name__)
        return self._finish(run, failed_step)

    def _finish(self, run: WorkflowRun, failed_step: str | None) -> RunResult:
        with self._lock:
            self._finished.append(run.id)
            while len(self._finished) > max(1, self._config.run_history_limit):
                self._runs.pop(self._finished.popleft(), None)
            results = tuple(run.step_results)
        duration_ms = int((run.end_time - run.start_time).total_seconds() * 1000) if run.end_time else 0
        outcome = RunResult(
            run_id=run.id,
            definition_id=run.definition_id,
            status=run.status,
            start_time=run.start_time,
            end_time=run.end_time,
            step_results=results,
            duration_ms=max(duration_ms, sum(result.duration_ms for result in results)),
            error=run.error,
            failed_step=failed_step,
        )
        if self._metrics is not None:
            counter = "completed_executions" if run.status == RUN_COMPLETED else "failed_executions"
            self._metrics.increment(counter)
        logger.info("Run %s finished with status %s", run.id, run.status)
        if self._events is not None:
            self._events.publish(
                EngineEvent(
                    type="run.finished",
                    payload={
                        "run_id": run.id,
                        "workflow_id": run.definition_id,
                        "status": run.status,
                        "error": run.error,
                        "trigger": run.trigger,
                    },
                    timestamp=self._clock.now(),
                    signals={"status": run.status, "workflow_id": run.definition_id},
                )
            )
        return outcome

    def _append(self, run: WorkflowRun, entry: LogEntry) -> None:
        with self._lock:
            run.add_log(entry)

    def _log(self, run: WorkflowRun, level: str, message: str) -> None:
        run.add_log(LogEntry(timestamp=self._clock.now(), level=level, message=message))


def _failure_message(result: StepResult) -> str:
    return f"Step '{result.step_id}' failed: {result.error}"
