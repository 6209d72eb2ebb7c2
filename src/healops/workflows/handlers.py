"""Step action handlers and the run-scoped context they receive."""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping

from ..actions import ActionExecutor
from ..errors import ExecutionError
from ..models import RuleAction, StepSpec
from ..telemetry import StaticTelemetrySource, TelemetrySource

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z0-9_.\-]+)\s*\}\}")
_MISSING = object()


@dataclass
class StepContext:
    """Variables and earlier step outputs visible to a step."""

    run_id: str
    workflow_id: str
    variables: Dict[str, Any] = field(default_factory=dict)
    outputs: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def lookup(self, path: str) -> Any:
        head, _, rest = path.partition(".")
        if head in self.outputs:
            value: Any = self.outputs[head]
        elif head in self.variables:
            value = self.variables[head]
        else:
            return _MISSING
        for part in rest.split(".") if rest else ():
            if not isinstance(value, Mapping) or part not in value:
                return _MISSING
            value = value[part]
        return value

    def render(self, value: Any) -> Any:
        """Substitute ``{{ name }}`` placeholders; unknown names are left untouched."""

        if isinstance(value, str):
            whole = _PLACEHOLDER.fullmatch(value.strip())
            if whole:
                found = self.lookup(whole.group(1))
                return value if found is _MISSING else found

            def _replace(match: re.Match[str]) -> str:
                found = self.lookup(match.group(1))
                return match.group(0) if found is _MISSING else str(found)

            return _PLACEHOLDER.sub(_replace, value)
        if isinstance(value, Mapping):
            return {key: self.render(item) for key, item in value.items()}
        if isinstance(value, list):
            return [self.render(item) for item in value]
        return value


StepHandler = Callable[[StepSpec, StepContext], Dict[str, Any]]


class StepActionRegistry:
    """Maps step action names to handlers.

    Unknown actions are dispatched to the action executor as ``{type: action,
    target: parameters.target}``; a non-successful result fails the attempt.
    """

    def __init__(
        self,
        action_executor: ActionExecutor | None = None,
        *,
        telemetry: TelemetrySource | None = None,
        include_builtins: bool = True,
    ) -> None:
        self._action_executor = action_executor or ActionExecutor()
        self._telemetry = telemetry or StaticTelemetrySource()
        self._handlers: Dict[str, StepHandler] = {}
        self._lock = threading.Lock()
        if include_builtins:
            self.register("monitor_cpu", self._metric_handler("cpu_usage"))
            self.register("monitor_memory", self._metric_handler("memory_usage"))
            self.register("monitor_disk", self._metric_handler("disk_usage"))
            self.register("create_health_report", _health_report)

    def register(self, action: str, handler: StepHandler) -> None:
        with self._lock:
            self._handlers[action] = handler

    def names(self) -> List[str]:
        return sorted(self._handlers)

    def resolve(self, action: str) -> StepHandler:
        handler = self._handlers.get(action)
        if handler is not None:
            return handler
        return self._dispatch_action

    def _dispatch_action(self, step: StepSpec, context: StepContext) -> Dict[str, Any]:
        descriptor = RuleAction(
            type=step.action,
            target=str(step.parameters.get("target", "")),
            parameters=dict(step.parameters),
        )
        result = self._action_executor.execute(
            descriptor,
            context={"origin": "workflow", "run_id": context.run_id},
        )
        if not result.succeeded:
            raise ExecutionError(f"{step.action} returned {result.status}: {result.detail}")
        return {
            "action_status": result.status,
            "detail": result.detail,
            "metadata": dict(result.metadata),
        }

    def _metric_handler(self, signal: str) -> StepHandler:
        def _handler(step: StepSpec, context: StepContext) -> Dict[str, Any]:
            snapshot = self._telemetry.snapshot()
            warning = float(step.parameters.get("warning_threshold", 80.0))
            critical = float(step.parameters.get("critical_threshold", 95.0))
            value = snapshot.get(signal)
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                return {"metric": signal, "value": None, "status": "unknown"}
            if value >= critical:
                status = "critical"
            elif value >= warning:
                status = "warning"
            else:
                status = "ok"
            return {"metric": signal, "value": float(value), "status": status}

        return _handler


def _health_report(step: StepSpec, context: StepContext) -> Dict[str, Any]:
    checks = {
        step_id: output
        for step_id, output in context.outputs.items()
        if isinstance(output, Mapping) and "metric" in output
    }
    statuses = [str(output.get("status")) for output in checks.values()]
    if any(status in {"warning", "critical"} for status in statuses):
        overall = "degraded"
    elif statuses and all(status == "ok" for status in statuses):
        overall = "healthy"
    else:
        overall = "unknown"
    return {
        "status": overall,
        "checks": {output["metric"]: output.get("value") for output in checks.values()},
        "checked": len(checks),
    }
