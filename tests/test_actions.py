import pytest
import requests

from healops.actions import (
    ActionExecutor,
    ActionRegistry,
    DefaultSafetyGuard,
    HttpActionClient,
    SimulatedActionClient,
    SlackNotificationClient,
)
from healops.errors import IntegrationError
from healops.models import ActionDescriptor


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse({})
        self.error = error
        self.requests = []

    def post(self, url, json=None, timeout=None):
        self.requests.append((url, json, timeout))
        if self.error is not None:
            raise self.error
        return self.response


def test_guard_blocks_denied_and_unlisted_actions(recorder):
    guard = DefaultSafetyGuard(allowed_actions={"restart_service", "scale_up"}, denied_actions={"scale_up"})
    executor = ActionExecutor(ActionRegistry(fallback=recorder), guard)

    blocked = executor.execute(ActionDescriptor(type="scale_up"))
    unlisted = executor.execute(ActionDescriptor(type="drop_database"))
    allowed = executor.execute(ActionDescriptor(type="restart_service", target="api"))

    assert blocked.status == "blocked"
    assert unlisted.status == "blocked"
    assert allowed.status == "success"
    assert allowed.metadata["target"] == "api"
    assert recorder.types == ["restart_service"]


def test_guard_simulates_configured_actions(recorder):
    executor = ActionExecutor(
        ActionRegistry(fallback=recorder),
        DefaultSafetyGuard(simulate_actions={"restart_database"}),
    )

    result = executor.execute(ActionDescriptor(type="restart_database", target="primary-db"))

    assert result.status == "simulated"
    assert result.succeeded
    assert recorder.calls == []


def test_executor_turns_client_errors_into_failed_results(recorder):
    recorder.raise_types.add("clear_cache")
    executor = ActionExecutor(ActionRegistry(fallback=recorder))

    result = executor.execute(ActionDescriptor(type="clear_cache"))

    assert result.status == "failed"
    assert result.detail == "clear_cache exploded"
    assert result.metadata["error_type"] == "RuntimeError"


def test_registry_prefers_specific_client_over_fallback(recorder):
    simulated = SimulatedActionClient(action_type="notify_email")
    registry = ActionRegistry([simulated], fallback=recorder)
    executor = ActionExecutor(registry)

    results = executor.execute_all([ActionDescriptor(type="notify_email"), ActionDescriptor(type="page")])

    assert [r.status for r in results] == ["simulated", "success"]
    assert registry.action_types() == ["notify_email"]


def test_missing_client_is_skipped():
    executor = ActionExecutor(ActionRegistry())

    assert executor.execute(ActionDescriptor(type="anything")).status == "skipped"


def test_http_client_posts_descriptor():
    session = FakeSession(FakeResponse({"status": "success", "detail": "restarted", "metadata": {"pid": 7}}))
    client = HttpActionClient(base_url="http://executor:9000/", session=session, timeout=3)

    result = client.execute(ActionDescriptor(type="restart_service", target="api", parameters={"graceful": True}))

    url, payload, timeout = session.requests[0]
    assert url == "http://executor:9000/actions/execute"
    assert payload == {"type": "restart_service", "target": "api", "parameters": {"graceful": True}}
    assert timeout == 3
    assert result.status == "success"
    assert result.metadata["pid"] == 7


@pytest.mark.parametrize(
    "session",
    [
        FakeSession(error=requests.ConnectionError("refused")),
        FakeSession(FakeResponse({}, status_code=503)),
        FakeSession(FakeResponse(None)),
        FakeSession(FakeResponse(["not", "an", "object"])),
    ],
)
def test_http_client_errors_raise_integration_error(session):
    client = HttpActionClient(base_url="http://executor", session=session)

    with pytest.raises(IntegrationError):
        client.execute(ActionDescriptor(type="restart_service"))


def test_slack_client_posts_message():
    session = FakeSession()
    client = SlackNotificationClient(webhook_url="https://hooks.example/T1", channel="#ops", session=session)

    result = client.execute(ActionDescriptor(type="notify_slack", parameters={"message": "[HIGH] disk"}))

    assert session.requests[0][1] == {"text": "[HIGH] disk", "channel": "#ops"}
    assert result.status == "success"


def test_slack_failure_is_reported_as_failed_action():
    session = FakeSession(error=requests.Timeout("slow"))
    executor = ActionExecutor(
        ActionRegistry([SlackNotificationClient(webhook_url="https://hooks.example/T1", session=session)])
    )

    result = executor.execute(ActionDescriptor(type="notify_slack"))

    assert result.status == "failed"
    assert "Slack webhook failed" in result.detail
