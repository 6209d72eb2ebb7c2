"""Telemetry source contract."""

from __future__ import annotations

import threading
from typing import Any, Dict, Mapping, Protocol


class TelemetrySource(Protocol):
    """Returns a snapshot of named signals (``cpu_usage``, ``memory_usage``, ...)."""

    def snapshot(self) -> Dict[str, Any]:
        """Return the latest signal values; missing signals are simply absent."""


class StaticTelemetrySource:
    """In-memory source fed by ``update``; used when no Prometheus is configured."""

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._values: Dict[str, Any] = dict(values or {})
        self._lock = threading.Lock()

    def update(self, values: Mapping[str, Any]) -> None:
        with self._lock:
            self._values.update(values)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._values)
