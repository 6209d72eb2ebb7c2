"""In-process publish/subscribe bus for engine events."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List

from .logs import get_logger

logger = get_logger("events")

EventHandler = Callable[["EngineEvent"], None]


@dataclass(frozen=True)
class EngineEvent:
    """Something that happened inside the engine (issue reported, run finished, ...)."""

    type: str
    payload: Dict[str, Any]
    timestamp: datetime
    signals: Dict[str, Any] = field(default_factory=dict)


class EventBus:
    """Synchronous fan-out of events to subscribers.

    A failing subscriber is logged and does not prevent delivery to the rest.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._lock = threading.Lock()

    def subscribe(self, handler: EventHandler, event_type: str = "*") -> None:
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)

    def publish(self, event: EngineEvent) -> int:
        with self._lock:
            handlers = list(self._handlers.get(event.type, [])) + list(
                self._handlers.get("*", [])
            )
        delivered = 0
        for handler in handlers:
            try:
                handler(event)
                delivered += 1
            except Exception:
                logger.exception("Event handler failed for %s", event.type)
        return delivered
