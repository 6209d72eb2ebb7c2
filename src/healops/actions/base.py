"""Abstract base classes for HealOps action executors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Protocol

from ..models import ActionDescriptor, ActionResult


class ActionClient(Protocol):
    """Interface for downstream action executors (remote API, Slack, etc.)."""

    action_type: str

    def execute(self, descriptor: ActionDescriptor) -> ActionResult:
        """Execute an action descriptor."""


@dataclass
class SimulatedActionClient:
    """Fallback client that reports success without any external call."""

    action_type: str = "*"

    def execute(self, descriptor: ActionDescriptor) -> ActionResult:
        detail = f"Simulated {descriptor.type} on '{descriptor.target or 'system'}'."
        metadata: Dict[str, Any] = {
            "target": descriptor.target,
            "parameters": dict(descriptor.parameters),
        }
        return ActionResult(
            action_type=descriptor.type,
            status="simulated",
            detail=detail,
            metadata=metadata,
        )
