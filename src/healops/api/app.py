"""FastAPI application exposing the HealOps engine."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, TypeVar

from fastapi import Body, FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST
from pydantic import BaseModel, Field

from ..config import load_config
from ..errors import IntegrationError, NotFoundError
from ..serializers import serialize, serialize_run
from ..services import AutomationEngine

T = TypeVar("T")


class WorkflowStepPayload(BaseModel):
    id: Optional[str] = Field(None, description="Unique step id; defaults to step_<index>")
    action: str = Field(..., description="Step action name")
    timeout_ms: Optional[int] = Field(None, description="Per-attempt deadline in milliseconds")
    retry_count: Optional[int] = Field(None, description="Retries after the first attempt")
    parameters: Dict[str, Any] = Field(default_factory=dict)


class WorkflowPayload(BaseModel):
    id: Optional[str] = None
    name: str
    description: str = ""
    steps: List[WorkflowStepPayload]
    schedule: Optional[str] = Field(None, description="Recurrence expression, e.g. '@every 5m'")
    triggers: List[str] = Field(default_factory=list, description="Event types that start the workflow")
    variables: Dict[str, Any] = Field(default_factory=dict)


class ExecutePayload(BaseModel):
    input: Dict[str, Any] = Field(default_factory=dict)
    wait: bool = Field(True, description="Block until the run finishes")


class SchedulePayload(BaseModel):
    workflow_id: str
    schedule: str = Field(..., description="Recurrence expression")
    name: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)
    max_retries: Optional[int] = None
    enabled: bool = True


class AssessmentPayload(BaseModel):
    system: str = "default"
    snapshot: Dict[str, Any] = Field(default_factory=dict)


class PolicyPayload(BaseModel):
    id: Optional[str] = None
    name: str
    description: str = ""
    rules: List[Dict[str, Any]]
    conditions: List[str] = Field(default_factory=list)
    actions: List[Dict[str, Any]] = Field(default_factory=list)
    events: List[str] = Field(default_factory=list)
    priority: str = "medium"
    enabled: bool = True


def _handle_errors(fn: Callable[[], T]) -> T:
    try:
        return fn()
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except IntegrationError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def create_app(engine: AutomationEngine | None = None) -> FastAPI:
    engine = engine or AutomationEngine(load_config())
    app = FastAPI(title="HealOps Automation Engine", version="0.3.0")
    app.state.engine = engine
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_event_handler("startup", engine.start)
    app.add_event_handler("shutdown", engine.stop)

    @app.get("/health")
    def health() -> dict[str, object]:
        return serialize(engine.health_check())

    @app.get("/capabilities")
    def capabilities() -> dict[str, object]:
        return engine.capabilities()

    @app.post("/workflows")
    def create_workflow(payload: WorkflowPayload) -> dict[str, object]:
        definition = payload.model_dump(exclude_none=True)
        return serialize(_handle_errors(lambda: engine.create_workflow(definition)))

    @app.post("/workflows/{workflow_id}/execute")
    def execute_workflow(workflow_id: str, payload: ExecutePayload) -> dict[str, object]:
        if payload.wait:
            result = _handle_errors(lambda: engine.execute_workflow(workflow_id, payload.input))
            return serialize(result)
        handle = _handle_errors(lambda: engine.submit_workflow(workflow_id, payload.input))
        return {"run_id": handle.run_id, "status": "running"}

    @app.get("/runs/{run_id}")
    def get_run(run_id: str) -> dict[str, object]:
        return serialize_run(_handle_errors(lambda: engine.get_run(run_id)))

    @app.post("/runs/{run_id}/cancel")
    def cancel_run(run_id: str) -> dict[str, object]:
        cancelled = _handle_errors(lambda: engine.cancel_run(run_id))
        return {"run_id": run_id, "cancelled": cancelled}

    @app.post("/schedules")
    def schedule_automation(payload: SchedulePayload) -> dict[str, object]:
        config = payload.model_dump(exclude_none=True)
        return serialize(_handle_errors(lambda: engine.schedule_automation(config)))

    @app.post("/issues")
    def report_issue(issue: Dict[str, Any] = Body(...)) -> dict[str, object]:
        return serialize(_handle_errors(lambda: engine.report_issue(issue)))

    @app.post("/assessments")
    def assess_system(payload: AssessmentPayload) -> dict[str, object]:
        return serialize(
            _handle_errors(lambda: engine.assess_system(payload.snapshot, system=payload.system))
        )

    @app.post("/scaling")
    def submit_scaling_metrics(metrics: Dict[str, Any] = Body(...)) -> dict[str, object]:
        return serialize(_handle_errors(lambda: engine.submit_scaling_metrics(metrics)))

    @app.post("/alerts")
    def submit_alert(alert: Dict[str, Any] = Body(...)) -> dict[str, object]:
        return serialize(_handle_errors(lambda: engine.submit_alert(alert)))

    @app.post("/optimizations")
    def request_optimization(scope: Optional[Dict[str, Any]] = Body(None)) -> dict[str, object]:
        return serialize(_handle_errors(lambda: engine.request_optimization(scope or {})))

    @app.post("/policies")
    def create_policy(payload: PolicyPayload) -> dict[str, object]:
        policy = payload.model_dump(exclude_none=True)
        return _handle_errors(lambda: engine.create_policy(policy))

    @app.get("/metrics")
    def get_metrics() -> dict[str, object]:
        return serialize(engine.get_metrics())

    @app.get("/metrics/prometheus")
    def prometheus_metrics() -> Response:
        return Response(content=engine.metrics.exposition(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/automation/health")
    def automation_health(system: str = "default") -> dict[str, object]:
        return serialize(engine.monitor_automation_health(system))

    return app
