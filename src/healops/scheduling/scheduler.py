"""Schedule store and trigger loop."""

from __future__ import annotations

import threading
from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..clock import Clock, SystemClock
from ..config import SchedulerConfig
from ..errors import NotFoundError, ValidationError
from ..logs import get_logger
from ..models import RunResult, Schedule, ScheduleFiring
from ..utils import new_id
from ..workflows import RunHandle, WorkflowRegistry, WorkflowRunCoordinator
from .expressions import ScheduleExpression

logger = get_logger("scheduler")

_MIN_WAIT_SECONDS = 0.05


class Scheduler:
    """Fires due schedules against the run coordinator.

    A due schedule fires once per tick no matter how many occurrences were missed,
    and its next run is always moved strictly past the tick time. Failed firings are
    retried with exponential backoff up to ``max_retries`` before the schedule falls
    back to its normal cadence.
    """

    def __init__(
        self,
        coordinator: WorkflowRunCoordinator,
        registry: WorkflowRegistry,
        *,
        config: SchedulerConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._coordinator = coordinator
        self._registry = registry
        self._config = config or SchedulerConfig()
        self._clock = clock or SystemClock()
        self._schedules: Dict[str, Schedule] = {}
        self._expressions: Dict[str, ScheduleExpression] = {}
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._wake_event = threading.Event()
        self._thread: threading.Thread | None = None

    def schedule(
        self,
        workflow_id: str,
        expression: str,
        *,
        name: str | None = None,
        parameters: Mapping[str, Any] | None = None,
        max_retries: int | None = None,
        enabled: bool = True,
    ) -> Schedule:
        self._registry.get(workflow_id)
        parsed = ScheduleExpression.parse(expression)
        retries = self._config.default_max_retries if max_retries is None else int(max_retries)
        if retries < 0:
            raise ValidationError("max_retries cannot be negative.")
        now = self._clock.now()
        schedule = Schedule(
            id=new_id("schedule"),
            name=name or f"{workflow_id} ({parsed.source})",
            workflow_id=workflow_id,
            expression=parsed.source,
            created_at=now,
            next_run=parsed.next_after(now) if enabled else None,
            enabled=enabled,
            max_retries=retries,
            parameters=dict(parameters or {}),
        )
        with self._lock:
            self._schedules[schedule.id] = schedule
            self._expressions[schedule.id] = parsed
        logger.info(
            "Scheduled workflow %s with %r (next run %s)",
            workflow_id,
            parsed.source,
            schedule.next_run,
        )
        self._wake()
        return schedule

    def update(
        self,
        schedule_id: str,
        *,
        expression: str | None = None,
        name: str | None = None,
        parameters: Mapping[str, Any] | None = None,
        max_retries: int | None = None,
    ) -> Schedule:
        parsed = ScheduleExpression.parse(expression) if expression is not None else None
        if max_retries is not None and int(max_retries) < 0:
            raise ValidationError("max_retries cannot be negative.")
        with self._lock:
            schedule = self._require(schedule_id)
            if parsed is not None:
                self._expressions[schedule_id] = parsed
                schedule.expression = parsed.source
                schedule.retry_attempt = 0
                if schedule.enabled:
                    schedule.next_run = parsed.next_after(self._clock.now())
            if name is not None:
                schedule.name = name
            if parameters is not None:
                schedule.parameters = dict(parameters)
            if max_retries is not None:
                schedule.max_retries = int(max_retries)
        self._wake()
        return schedule

    def enable(self, schedule_id: str) -> Schedule:
        with self._lock:
            schedule = self._require(schedule_id)
            if not schedule.enabled:
                schedule.enabled = True
                schedule.retry_attempt = 0
                # Occurrences missed while disabled are not replayed.
                schedule.next_run = self._expressions[schedule_id].next_after(self._clock.now())
        self._wake()
        return schedule

    def disable(self, schedule_id: str) -> Schedule:
        with self._lock:
            schedule = self._require(schedule_id)
            schedule.enabled = False
            schedule.next_run = None
        return schedule

    def get(self, schedule_id: str) -> Schedule:
        with self._lock:
            return self._require(schedule_id)

    def list(self) -> List[Schedule]:
        with self._lock:
            return list(self._schedules.values())

    def enabled_count(self) -> int:
        with self._lock:
            return sum(1 for schedule in self._schedules.values() if schedule.enabled)

    def tick(self, *, wait: bool = True) -> List[ScheduleFiring]:
        """Fire every enabled schedule whose next run is due.

        With ``wait`` the call blocks until the triggered runs finish and the returned
        firings carry their final status; otherwise outcomes are applied as runs complete.
        """

        now = self._clock.now()
        with self._lock:
            due = [
                schedule
                for schedule in self._schedules.values()
                if schedule.enabled and schedule.next_run is not None and schedule.next_run <= now
            ]
            for schedule in due:
                schedule.last_run = now
                schedule.next_run = self._expressions[schedule.id].next_after(now)

        launched: List[Tuple[Schedule, Optional[RunHandle], Optional[str]]] = []
        for schedule in due:
            try:
                handle = self._coordinator.submit(schedule.workflow_id, schedule.parameters)
            except Exception as exc:
                logger.exception("Failed to trigger schedule %s", schedule.id)
                launched.append((schedule, None, str(exc) or exc.__class__.__name__))
                continue
            logger.info("Schedule %s fired run %s", schedule.id, handle.run_id)
            launched.append((schedule, handle, None))

        firings: List[ScheduleFiring] = []
        for schedule, handle, error in launched:
            if handle is None:
                self._complete(schedule.id, error)
                firings.append(self._firing(schedule, now, None, "failed", error))
            elif wait:
                error = _run_error(handle)
                self._complete(schedule.id, error)
                status = "failed" if error else "completed"
                firings.append(self._firing(schedule, now, handle.run_id, status, error))
            else:
                handle.future.add_done_callback(
                    lambda _future, sid=schedule.id, h=handle: self._complete(sid, _run_error(h))
                )
                firings.append(self._firing(schedule, now, handle.run_id, "submitted", None))
        return firings

    def start(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run,
                name="healops-scheduler",
                daemon=True,
            )
            self._thread.start()
        logger.info("Scheduler loop started")

    def stop(self, timeout: float = 2.0) -> None:
        self._stop_event.set()
        self._wake_event.set()
        thread = self._thread
        if thread is not None and thread.is_alive():
            thread.join(timeout=timeout)
        logger.info("Scheduler loop stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick(wait=False)
            except Exception:
                logger.exception("Scheduler tick failed")
            self._wake_event.wait(self._seconds_until_next())
            self._wake_event.clear()

    def _seconds_until_next(self) -> float:
        wait = self._config.poll_interval_seconds
        now = self._clock.now()
        with self._lock:
            pending = [
                schedule.next_run
                for schedule in self._schedules.values()
                if schedule.enabled and schedule.next_run is not None
            ]
        if pending:
            wait = min(wait, (min(pending) - now).total_seconds())
        return max(_MIN_WAIT_SECONDS, wait)

    def _wake(self) -> None:
        self._wake_event.set()

    def _complete(self, schedule_id: str, error: str | None) -> None:
        with self._lock:
            schedule = self._schedules.get(schedule_id)
            if schedule is None:
                return
            if error is None:
                schedule.retry_attempt = 0
                schedule.last_error = None
                return
            schedule.last_error = error
            now = self._clock.now()
            if schedule.retry_attempt < schedule.max_retries:
                schedule.retry_attempt += 1
                backoff = self._config.retry_backoff_seconds * (2 ** (schedule.retry_attempt - 1))
                retry_at = now + timedelta(seconds=backoff)
                if schedule.enabled and (schedule.next_run is None or retry_at < schedule.next_run):
                    schedule.next_run = retry_at
                logger.warning(
                    "Schedule %s failed (%s); retry %d/%d at %s",
                    schedule.id,
                    error,
                    schedule.retry_attempt,
                    schedule.max_retries,
                    schedule.next_run,
                )
                return
            logger.error(
                "Scheduling failure for %s (workflow %s) after %d retries: %s",
                schedule.id,
                schedule.workflow_id,
                schedule.max_retries,
                error,
            )
            schedule.retry_attempt = 0
            if schedule.enabled and (schedule.next_run is None or schedule.next_run <= now):
                schedule.next_run = self._expressions[schedule.id].next_after(now)

    def _firing(
        self,
        schedule: Schedule,
        fired_at: Any,
        run_id: str | None,
        status: str,
        error: str | None,
    ) -> ScheduleFiring:
        with self._lock:
            next_run = schedule.next_run
        return ScheduleFiring(
            schedule_id=schedule.id,
            workflow_id=schedule.workflow_id,
            fired_at=fired_at,
            status=status,
            run_id=run_id,
            error=error,
            next_run=next_run,
        )

    def _require(self, schedule_id: str) -> Schedule:
        schedule = self._schedules.get(schedule_id)
        if schedule is None:
            raise NotFoundError(f"Schedule '{schedule_id}' not found.")
        return schedule


def _run_error(handle: RunHandle) -> str | None:
    try:
        result: RunResult = handle.result()
    except Exception as exc:
        return str(exc) or exc.__class__.__name__
    return None if result.succeeded else (result.error or "Run failed")
