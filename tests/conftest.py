from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Set

import pytest

from healops.actions import ActionExecutor, ActionRegistry
from healops.clock import ManualClock
from healops.config import HealOpsConfig
from healops.models import ActionDescriptor, ActionResult
from healops.services import AutomationEngine

START = datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc)


@dataclass
class RecordingActionClient:
    """Fallback client that records every descriptor it receives."""

    action_type: str = "*"
    fail_types: Set[str] = field(default_factory=set)
    raise_types: Set[str] = field(default_factory=set)
    metadata: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    calls: List[ActionDescriptor] = field(default_factory=list)

    def execute(self, descriptor: ActionDescriptor) -> ActionResult:
        self.calls.append(descriptor)
        if descriptor.type in self.raise_types:
            raise RuntimeError(f"{descriptor.type} exploded")
        if descriptor.type in self.fail_types:
            return ActionResult(descriptor.type, "failed", f"{descriptor.type} failed")
        return ActionResult(
            descriptor.type,
            "success",
            f"{descriptor.type} done",
            dict(self.metadata.get(descriptor.type, {})),
        )

    @property
    def types(self) -> List[str]:
        return [call.type for call in self.calls]


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(START)


@pytest.fixture
def recorder() -> RecordingActionClient:
    return RecordingActionClient()


@pytest.fixture
def action_executor(recorder: RecordingActionClient) -> ActionExecutor:
    return ActionExecutor(ActionRegistry(fallback=recorder))


@pytest.fixture
def engine(clock: ManualClock, recorder: RecordingActionClient):
    engine = AutomationEngine(HealOpsConfig(), clock=clock, fallback_client=recorder)
    yield engine
    engine.shutdown()
