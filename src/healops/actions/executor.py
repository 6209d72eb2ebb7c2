"""Action execution utilities for HealOps."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping

from ..logs import get_logger
from ..models import ActionDescriptor, ActionResult
from .base import ActionClient, SimulatedActionClient
from .guard import DefaultSafetyGuard, SafetyGuard

logger = get_logger("actions")


class ActionRegistry:
    """Manages action clients keyed by their action type.

    Unregistered types go to the fallback client when one is configured.
    """

    def __init__(
        self,
        clients: Iterable[ActionClient] | None = None,
        *,
        fallback: ActionClient | None = None,
    ) -> None:
        self._clients: Dict[str, ActionClient] = {}
        self._fallback = fallback
        if clients:
            for client in clients:
                self.register(client)

    def register(self, client: ActionClient) -> None:
        self._clients[client.action_type] = client

    def get(self, action_type: str) -> ActionClient | None:
        return self._clients.get(action_type) or self._fallback

    def action_types(self) -> List[str]:
        return sorted(self._clients)


class ActionExecutor:
    """Executes action descriptors via registered clients.

    Never raises: client exceptions come back as ``failed`` results.
    """

    def __init__(
        self,
        registry: ActionRegistry | None = None,
        guard: SafetyGuard | None = None,
    ) -> None:
        self._registry = registry or ActionRegistry(fallback=SimulatedActionClient())
        self._guard = guard or DefaultSafetyGuard()

    @property
    def registry(self) -> ActionRegistry:
        return self._registry

    def register(self, client: ActionClient) -> None:
        self._registry.register(client)

    def execute(
        self,
        descriptor: ActionDescriptor,
        *,
        context: Mapping[str, Any] | None = None,
    ) -> ActionResult:
        context = context or {}
        decision = self._guard.authorize(descriptor=descriptor, context=context)
        if not decision.allowed:
            logger.warning("Blocked action %s: %s", descriptor.type, decision.reason)
            return ActionResult(
                action_type=descriptor.type,
                status="blocked",
                detail=decision.reason,
                metadata={"guard": decision.metadata, "target": descriptor.target},
            )
        if decision.simulate_only:
            return self._guard.simulate(descriptor=descriptor, decision=decision)

        client = self._registry.get(descriptor.type)
        if not client:
            return ActionResult(
                action_type=descriptor.type,
                status="skipped",
                detail="No action client registered; manual follow-up required.",
                metadata={"target": descriptor.target},
            )
        try:
            result = client.execute(descriptor)
        except Exception as exc:
            logger.exception("Action %s on %s failed", descriptor.type, descriptor.target)
            return ActionResult(
                action_type=descriptor.type,
                status="failed",
                detail=str(exc) or exc.__class__.__name__,
                metadata={"target": descriptor.target, "error_type": exc.__class__.__name__},
            )
        if decision.metadata:
            result.metadata.setdefault("guard", decision.metadata)
        result.metadata.setdefault("target", descriptor.target)
        return result

    def execute_all(
        self,
        descriptors: Iterable[ActionDescriptor],
        *,
        context: Mapping[str, Any] | None = None,
    ) -> List[ActionResult]:
        return [self.execute(descriptor, context=context) for descriptor in descriptors]
