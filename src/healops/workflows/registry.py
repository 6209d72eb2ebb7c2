"""Workflow definition registry."""

from __future__ import annotations

import threading
from typing import Any, Dict, Iterable, List, Mapping

from ..clock import Clock, SystemClock
from ..config import WorkflowConfig
from ..errors import NotFoundError, ValidationError
from ..logs import get_logger
from ..models import RegistrationResult, StepSpec, WorkflowDefinition
from ..utils import new_id

logger = get_logger("workflows")


def _as_int(value: Any, *, field_name: str, step_id: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"Step '{step_id}' {field_name} must be an integer.")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Step '{step_id}' {field_name} must be an integer.") from exc


def build_steps(
    raw_steps: Iterable[Mapping[str, Any] | StepSpec],
    config: WorkflowConfig,
) -> tuple[StepSpec, ...]:
    """Normalize step payloads, applying configured timeout and retry defaults."""

    steps: List[StepSpec] = []
    seen: set[str] = set()
    for index, raw in enumerate(raw_steps):
        if isinstance(raw, StepSpec):
            step = raw
        else:
            if not isinstance(raw, Mapping):
                raise ValidationError(f"Step #{index} must be an object.")
            step_id = str(raw.get("id") or f"step_{index}")
            action = str(raw.get("action") or raw.get("name") or "").strip()
            timeout = raw.get("timeout_ms", raw.get("timeout"))
            retries = raw.get("retry_count", raw.get("retryCount"))
            parameters = raw.get("parameters") or {}
            if not isinstance(parameters, Mapping):
                raise ValidationError(f"Step '{step_id}' parameters must be an object.")
            step = StepSpec(
                id=step_id,
                action=action,
                timeout_ms=(
                    config.default_step_timeout_ms
                    if timeout is None
                    else _as_int(timeout, field_name="timeout", step_id=step_id)
                ),
                # An explicit 0 disables retries.
                retry_count=(
                    config.default_retry_count
                    if retries is None
                    else _as_int(retries, field_name="retry_count", step_id=step_id)
                ),
                parameters=dict(parameters),
            )
        if not step.action:
            raise ValidationError(f"Step '{step.id}' has no action.")
        if step.timeout_ms <= 0:
            raise ValidationError(f"Step '{step.id}' timeout must be positive.")
        if step.retry_count < 0:
            raise ValidationError(f"Step '{step.id}' retry count cannot be negative.")
        if step.id in seen:
            raise ValidationError(f"Duplicate step id '{step.id}'.")
        seen.add(step.id)
        steps.append(step)
    if not steps:
        raise ValidationError("A workflow needs at least one step.")
    return tuple(steps)


class WorkflowRegistry:
    """Owns workflow definitions; reads take a snapshot under the registration lock."""

    def __init__(
        self,
        config: WorkflowConfig | None = None,
        *,
        clock: Clock | None = None,
    ) -> None:
        self._config = config or WorkflowConfig()
        self._clock = clock or SystemClock()
        self._definitions: Dict[str, WorkflowDefinition] = {}
        self._lock = threading.Lock()

    def build_definition(self, payload: Mapping[str, Any]) -> WorkflowDefinition:
        if not isinstance(payload, Mapping):
            raise ValidationError("Workflow definition must be an object.")
        name = str(payload.get("name") or "").strip()
        if not name:
            raise ValidationError("Workflow name is required.")
        raw_steps = payload.get("steps")
        if not isinstance(raw_steps, (list, tuple)):
            raise ValidationError("Workflow steps must be a list.")
        variables = payload.get("variables") or {}
        if not isinstance(variables, Mapping):
            raise ValidationError("Workflow variables must be an object.")
        triggers = payload.get("triggers") or ()
        if isinstance(triggers, str):
            triggers = (triggers,)
        return WorkflowDefinition(
            id=str(payload.get("id") or new_id("workflow")),
            name=name,
            description=str(payload.get("description") or ""),
            steps=build_steps(raw_steps, self._config),
            schedule=payload.get("schedule") or None,
            triggers=tuple(str(trigger) for trigger in triggers),
            variables=dict(variables),
            created_at=self._clock.now(),
            status=str(payload.get("status") or "active"),
        )

    def register(
        self,
        definition: WorkflowDefinition | Mapping[str, Any],
    ) -> RegistrationResult:
        if not isinstance(definition, WorkflowDefinition):
            definition = self.build_definition(definition)
        else:
            build_steps(definition.steps, self._config)
        with self._lock:
            if definition.id in self._definitions:
                raise ValidationError(f"Workflow '{definition.id}' is already registered.")
            self._definitions[definition.id] = definition
        logger.info("Registered workflow %s (%d steps)", definition.id, len(definition.steps))
        return RegistrationResult(
            workflow_id=definition.id,
            steps_count=len(definition.steps),
            estimated_duration_ms=len(definition.steps) * self._config.average_step_duration_ms,
        )

    def get(self, workflow_id: str) -> WorkflowDefinition:
        with self._lock:
            definition = self._definitions.get(workflow_id)
        if definition is None:
            raise NotFoundError(f"Workflow '{workflow_id}' not found.")
        return definition

    def list(self) -> List[WorkflowDefinition]:
        with self._lock:
            return list(self._definitions.values())

    def with_trigger(self, event_type: str) -> List[WorkflowDefinition]:
        return [
            definition
            for definition in self.list()
            if definition.status == "active" and event_type in definition.triggers
        ]

    def active_count(self) -> int:
        return sum(1 for definition in self.list() if definition.status == "active")

    def __contains__(self, workflow_id: object) -> bool:
        with self._lock:
            return workflow_id in self._definitions

    def __len__(self) -> int:
        with self._lock:
            return len(self._definitions)
