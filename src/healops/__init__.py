"""HealOps: workflow orchestration and self-healing automation engine."""

from .config import HealOpsConfig, load_config
from .errors import (
    ExecutionError,
    ExecutionTimeoutError,
    HealOpsError,
    IntegrationError,
    NotFoundError,
    ValidationError,
)
from .services import AutomationEngine

__all__ = [
    "HealOpsConfig",
    "load_config",
    "ExecutionError",
    "ExecutionTimeoutError",
    "HealOpsError",
    "IntegrationError",
    "NotFoundError",
    "ValidationError",
    "AutomationEngine",
]

__version__ = "0.3.0"
