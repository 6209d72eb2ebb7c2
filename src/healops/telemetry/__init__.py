"""Telemetry sources feeding health checks and risk assessment."""

from .base import StaticTelemetrySource, TelemetrySource
from .prometheus import DEFAULT_QUERIES, PrometheusClient, PrometheusTelemetrySource

__all__ = [
    "StaticTelemetrySource",
    "TelemetrySource",
    "DEFAULT_QUERIES",
    "PrometheusClient",
    "PrometheusTelemetrySource",
]
