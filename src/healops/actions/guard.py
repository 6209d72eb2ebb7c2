"""Safety guard implementations for action execution."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Protocol

from ..models import ActionDescriptor, ActionResult


@dataclass
class GuardDecision:
    """Outcome of safety guard authorization."""

    allowed: bool
    reason: str = ""
    simulate_only: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)


class SafetyGuard(Protocol):
    """Defines a contract for safeguarding action execution."""

    def authorize(
        self,
        *,
        descriptor: ActionDescriptor,
        context: Mapping[str, Any],
    ) -> GuardDecision:
        """Determine whether the action may be executed."""

    def simulate(
        self,
        *,
        descriptor: ActionDescriptor,
        decision: GuardDecision,
    ) -> ActionResult:
        """Produce a simulated result when execution is deferred."""


class DefaultSafetyGuard(SafetyGuard):
    """Guard enforcing an optional allowlist, a denylist and simulate-only actions.

    With no allowlist every action type not explicitly denied is permitted.
    """

    def __init__(
        self,
        *,
        allowed_actions: Iterable[str] | None = None,
        denied_actions: Iterable[str] | None = None,
        simulate_actions: Iterable[str] | None = None,
    ) -> None:
        self._allowed_actions = set(allowed_actions) if allowed_actions is not None else None
        self._denied_actions = set(denied_actions or ())
        self._simulate_actions = set(simulate_actions or ())

    def authorize(
        self,
        *,
        descriptor: ActionDescriptor,
        context: Mapping[str, Any],
    ) -> GuardDecision:
        action_type = descriptor.type
        metadata: Dict[str, Any] = {
            "action_type": action_type,
            "origin": context.get("origin", "engine"),
        }
        permitted = action_type not in self._denied_actions and (
            self._allowed_actions is None or action_type in self._allowed_actions
        )
        if not permitted:
            return GuardDecision(
                allowed=False,
                reason=f"Action type '{action_type}' is not permitted by safety policy.",
                simulate_only=False,
                metadata=metadata,
            )
        simulate_only = action_type in self._simulate_actions
        metadata["mode"] = "simulation" if simulate_only else "execution"
        return GuardDecision(
            allowed=True,
            reason="Authorized",
            simulate_only=simulate_only,
            metadata=metadata,
        )

    def simulate(
        self,
        *,
        descriptor: ActionDescriptor,
        decision: GuardDecision,
    ) -> ActionResult:
        detail = "Safety guard simulation executed; real command requires elevated approval."
        return ActionResult(
            action_type=descriptor.type,
            status="simulated",
            detail=detail,
            metadata={
                "guard": decision.metadata,
                "target": descriptor.target,
                "parameters": dict(descriptor.parameters),
            },
        )
