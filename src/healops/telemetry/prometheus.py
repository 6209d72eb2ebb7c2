"""Prometheus-backed telemetry source."""

from __future__ import annotations

from typing import Dict, Mapping, Optional

import requests

from ..errors import IntegrationError
from ..logs import get_logger

logger = get_logger("telemetry")

DEFAULT_QUERIES: Dict[str, str] = {
    "cpu_usage": '100 - avg(rate(node_cpu_seconds_total{mode="idle"}[5m])) * 100',
    "memory_usage": "(1 - node_memory_MemAvailable_bytes / node_memory_MemTotal_bytes) * 100",
    "disk_usage": '(1 - node_filesystem_avail_bytes{mountpoint="/"} '
    '/ node_filesystem_size_bytes{mountpoint="/"}) * 100',
    "network_latency_ms": "avg(probe_duration_seconds) * 1000",
}


class PrometheusClient:
    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        timeout: float = 10.0,
    ) -> None:
        self._session = session or requests.Session()
        self._timeout = timeout

    def instant_value(self, base_url: str, query: str) -> float:
        endpoint = f"{base_url.rstrip('/')}/api/v1/query"
        try:
            response = self._session.get(endpoint, params={"query": query}, timeout=self._timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as exc:
            raise IntegrationError(f"Prometheus query failed: {exc}") from exc
        except ValueError as exc:
            raise IntegrationError("Prometheus response returned invalid JSON") from exc

        if data.get("status") != "success":
            raise IntegrationError(
                f"Prometheus query unsuccessful: {data.get('error', 'unknown error')}"
            )

        result = data.get("data", {}).get("result", [])
        if not result:
            raise IntegrationError("Prometheus query returned no samples")

        try:
            return float(result[0]["value"][1])
        except (KeyError, TypeError, ValueError) as exc:
            raise IntegrationError("Prometheus sample missing numeric value") from exc


class PrometheusTelemetrySource:
    """Runs one instant query per signal; failing queries are left out of the snapshot."""

    def __init__(
        self,
        base_url: str,
        *,
        queries: Mapping[str, str] | None = None,
        client: PrometheusClient | None = None,
    ) -> None:
        self._base_url = base_url
        self._queries = dict(queries or DEFAULT_QUERIES)
        self._client = client or PrometheusClient()

    def snapshot(self) -> Dict[str, float]:
        values: Dict[str, float] = {}
        for signal, query in self._queries.items():
            try:
                values[signal] = self._client.instant_value(self._base_url, query)
            except IntegrationError as exc:
                logger.warning("Telemetry signal %s unavailable: %s", signal, exc)
        return values
