"""Workflow definitions, step execution and run coordination."""

from .coordinator import CANCELLED_MESSAGE, RunHandle, WorkflowRunCoordinator
from .defaults import default_workflows
from .handlers import StepActionRegistry, StepContext, StepHandler
from .registry import WorkflowRegistry, build_steps
from .steps import StepExecutor

__all__ = [
    "CANCELLED_MESSAGE",
    "RunHandle",
    "WorkflowRunCoordinator",
    "default_workflows",
    "StepActionRegistry",
    "StepContext",
    "StepHandler",
    "WorkflowRegistry",
    "build_steps",
    "StepExecutor",
]
