import pytest
from fastapi.testclient import TestClient

from healops.api import create_app


@pytest.fixture
def client(engine):
    return TestClient(create_app(engine))


def _workflow(**overrides):
    payload = {"name": "deploy", "steps": [{"id": "ship", "action": "ship", "retry_count": 0}]}
    payload.update(overrides)
    return payload


def test_health_endpoint(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_create_and_execute_workflow(client, recorder):
    created = client.post("/workflows", json=_workflow())
    assert created.status_code == 200
    workflow_id = created.json()["workflow_id"]
    assert created.json()["estimated_duration_ms"] == 2000

    executed = client.post(f"/workflows/{workflow_id}/execute", json={"input": {"ticket": "OPS-7"}})

    body = executed.json()
    assert executed.status_code == 200
    assert body["status"] == "completed"
    assert recorder.types == ["ship"]

    run = client.get(f"/runs/{body['run_id']}").json()
    assert run["status"] == "completed"
    assert run["input"] == {"ticket": "OPS-7"}
    assert "cancel_requested" not in run


def test_invalid_workflow_is_rejected(client):
    response = client.post("/workflows", json=_workflow(steps=[]))

    assert response.status_code == 400


def test_unknown_workflow_and_run_return_404(client):
    assert client.post("/workflows/missing/execute", json={}).status_code == 404
    assert client.get("/runs/run_missing").status_code == 404
    assert client.post("/runs/run_missing/cancel").status_code == 404


def test_schedule_endpoint_validates_expression(client):
    ok = client.post("/schedules", json={"workflow_id": "system-health-check", "schedule": "@every 10m"})
    bad = client.post("/schedules", json={"workflow_id": "system-health-check", "schedule": "sometimes"})

    assert ok.status_code == 200
    assert ok.json()["status"] == "scheduled"
    assert bad.status_code == 400


def test_issue_alert_and_scaling_endpoints(client):
    issue = client.post("/issues", json={"database_connections_failed": 12}).json()
    alert = client.post("/alerts", json={"severity": "high", "name": "Checkout errors"}).json()
    scaling = client.post("/scaling", json={"cpu": 10, "memory": 5}).json()

    assert issue["status"] == "healing_applied"
    assert issue["healing_actions"][0]["action"] == "restart_database"
    assert alert["severity"] == "high"
    assert len(alert["escalation_path"]) == 3
    assert scaling["decision"]["action"] == "scale_down"


def test_optimization_without_body(client):
    response = client.post("/optimizations")

    assert response.status_code == 200
    assert response.json()["total_improvements"] == 2


def test_policy_and_metrics_endpoints(client):
    created = client.post("/policies", json={"name": "p", "rules": [{"condition": "cpu > 90"}]})
    rejected = client.post("/policies", json={"name": "p", "rules": []})

    assert created.status_code == 200
    assert created.json()["status"] == "created"
    assert rejected.status_code == 400

    metrics = client.get("/metrics").json()
    assert metrics["total_policies"] == 1
    assert metrics["total_workflows"] == 2

    exposition = client.get("/metrics/prometheus")
    assert exposition.status_code == 200
    assert "healops_completed_executions_total" in exposition.text


def test_automation_health_endpoint(client):
    body = client.get("/automation/health", params={"system": "api"}).json()

    assert body["system"] == "api"
    assert body["status"] == "healthy"
