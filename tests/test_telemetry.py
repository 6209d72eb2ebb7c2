import pytest
import requests

from healops.errors import IntegrationError
from healops.telemetry import PrometheusClient, PrometheusTelemetrySource, StaticTelemetrySource


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, responses):
        self.responses = responses
        self.queries = []

    def get(self, url, params=None, timeout=None):
        query = params["query"]
        self.queries.append((url, query))
        return self.responses[query]


def _sample(value):
    return FakeResponse({"status": "success", "data": {"result": [{"value": [0, str(value)]}]}})


def test_instant_value_parses_first_sample():
    session = FakeSession({"up": _sample(1)})
    client = PrometheusClient(session)

    assert client.instant_value("http://prom:9090/", "up") == 1.0
    assert session.queries == [("http://prom:9090/api/v1/query", "up")]


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse({"status": "error", "error": "bad query"}),
        FakeResponse({"status": "success", "data": {"result": []}}),
        FakeResponse({"status": "success", "data": {"result": [{"value": [0, "NaN?"]}]}}),
        FakeResponse({}, status_code=500),
    ],
)
def test_instant_value_errors(response):
    client = PrometheusClient(FakeSession({"up": response}))

    with pytest.raises(IntegrationError):
        client.instant_value("http://prom", "up")


def test_prometheus_source_omits_failing_signals():
    session = FakeSession(
        {
            "cpu": _sample(72.5),
            "memory": FakeResponse({"status": "success", "data": {"result": []}}),
        }
    )
    source = PrometheusTelemetrySource(
        "http://prom",
        queries={"cpu_usage": "cpu", "memory_usage": "memory"},
        client=PrometheusClient(session),
    )

    assert source.snapshot() == {"cpu_usage": 72.5}


def test_static_source_returns_copies():
    source = StaticTelemetrySource({"cpu_usage": 10})
    snapshot = source.snapshot()
    snapshot["cpu_usage"] = 99
    source.update({"disk_usage": 40})

    assert source.snapshot() == {"cpu_usage": 10, "disk_usage": 40}
