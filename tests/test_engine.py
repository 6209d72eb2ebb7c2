from datetime import timedelta

import pytest

from healops.config import HealOpsConfig, ScalingConfig
from healops.errors import NotFoundError, ValidationError
from healops.services import AutomationEngine


def test_default_workflows_are_registered_and_scheduled(engine):
    assert [d.id for d in engine.workflows.list()] == ["system-health-check", "security-audit"]
    assert engine.scheduler.enabled_count() == 2
    assert engine.rules.enabled_count() == 3


def test_health_check_workflow_runs_builtin_steps(engine, recorder):
    engine.telemetry.update({"cpu_usage": 40, "memory_usage": 50, "disk_usage": 60})

    result = engine.execute_workflow("system-health-check")

    assert result.status == "completed"
    assert [r.step_id for r in result.step_results] == ["cpu", "memory", "disk", "report"]
    assert result.step_results[-1].output["status"] == "healthy"
    assert recorder.calls == []


def test_security_audit_dispatches_actions_and_passes_outputs(engine, recorder):
    result = engine.execute_workflow("security-audit")

    assert result.succeeded
    assert recorder.types == ["security_scan", "compliance_check", "security_report"]
    assert recorder.calls[-1].parameters["scan"] == "security_scan done"


def test_failed_workflow_degrades_automation_health(engine, recorder):
    assert engine.monitor_automation_health()["status"] == "healthy"
    recorder.fail_types.add("security_scan")

    result = engine.execute_workflow("security-audit")
    report = engine.monitor_automation_health("edge")

    assert result.failed_step == "scan"
    assert recorder.types == ["security_scan"] * 3
    assert report["status"] == "degraded"
    assert report["system"] == "edge"
    assert "Low workflow success rate detected" in report["issues"]
    assert engine.get_metrics().failed_executions == 1


def test_schedule_automation(engine, clock):
    created = engine.schedule_automation({"workflow_id": "security-audit", "schedule": "@every 1h"})

    assert created["status"] == "scheduled"
    assert created["next_run"] == clock.now() + timedelta(hours=1)
    with pytest.raises(ValidationError):
        engine.schedule_automation({"schedule": "@every 1h"})
    with pytest.raises(NotFoundError):
        engine.schedule_automation({"workflow_id": "missing", "schedule": "@every 1h"})


def test_report_issue_heals_and_counts(engine, recorder):
    report = engine.report_issue({"memory_usage": 95})

    assert report.status == "healing_applied"
    assert recorder.types == ["restart_service", "clear_cache", "notify_admin"]
    metrics = engine.get_metrics()
    assert metrics.self_healing_events == 1
    assert metrics.automated_actions == 3


def test_scaling_metrics_trigger_scale_up(engine, recorder, clock):
    response = engine.submit_scaling_metrics({"cpu": 92, "memory": 40})

    assert response["decision"].action == "scale_up"
    assert [a.status for a in response["actions"]] == ["completed"]
    assert response["next_evaluation"] == clock.now() + timedelta(seconds=300)
    assert engine.get_metrics().scaling_actions == 1


def test_alert_triggers_matching_policy_and_workflow(engine, recorder):
    policy_id = engine.create_policy(
        {
            "name": "critical alerts",
            "events": ["alert.processed"],
            "rules": [{"condition": "severity == 'critical'"}],
        }
    )["policy_id"]
    engine.create_workflow(
        {
            "id": "incident-response",
            "name": "Incident response",
            "triggers": ["alert.processed"],
            "steps": [{"action": "open_incident", "retry_count": 0}],
        }
    )

    engine.submit_alert({"severity": "critical", "name": "Database outage"})
    engine.runs.shutdown(wait=True)

    assert engine.policies.get(policy_id).trigger_count == 1
    runs = [run for run in engine.runs.list_runs() if run.definition_id == "incident-response"]
    assert len(runs) == 1
    assert runs[0].input["severity"] == "critical"
    assert "open_incident" in recorder.types


def test_optimization_caps_efficiency(engine):
    result = engine.request_optimization()

    assert result.efficiency_gain == pytest.approx(8.5)
    assert engine.get_metrics().efficiency == 100.0


def test_assess_system_uses_snapshot(engine):
    assessment = engine.assess_system({"memory_usage": 95}, system="db-1")

    assert assessment.system == "db-1"
    assert assessment.maintenance_scheduled


def test_assess_system_scores_positional_snapshot(engine):
    assessment = engine.assess_system({"memory_usage": 99, "disk_usage": 95})

    assert assessment.system == "default"
    assert assessment.scores["memory"] > 0
    assert assessment.maintenance_scheduled


def test_health_check_and_capabilities(engine):
    health = engine.health_check()

    assert health["status"] == "healthy"
    assert health["checks"]["scheduler"] == "warn"
    assert health["checks"]["predictive_maintenance"] == "warn"
    assert health["metrics"].total_workflows == 2

    capabilities = engine.capabilities()
    assert "self_healing" in capabilities["capabilities"]
    assert "monitor_cpu" in capabilities["step_actions"]


def test_cancel_unknown_run(engine):
    with pytest.raises(NotFoundError):
        engine.cancel_run("run_missing")


def test_invalid_schedule_leaves_no_workflow_behind(engine):
    with pytest.raises(ValidationError):
        engine.create_workflow(
            {
                "id": "bad-sched",
                "name": "Bad schedule",
                "schedule": "not a schedule",
                "steps": [{"action": "noop"}],
            }
        )

    assert "bad-sched" not in engine.workflows
    assert len(engine.workflows) == 2
    assert engine.scheduler.enabled_count() == 2


def test_run_finished_triggers_do_not_cascade(engine, recorder):
    for workflow_id in ("a", "b"):
        engine.create_workflow(
            {
                "id": workflow_id,
                "name": workflow_id,
                "triggers": ["run.finished"],
                "steps": [{"action": f"step_{workflow_id}", "retry_count": 0}],
            }
        )

    engine.execute_workflow("a")
    engine.runs.shutdown(wait=True)

    runs = {run.definition_id: run for run in engine.runs.list_runs()}
    assert sorted(runs) == ["a", "b"]
    assert runs["a"].trigger is None
    assert runs["b"].trigger == "run.finished"
    assert recorder.types == ["step_a", "step_b"]


def test_health_check_reports_failed_scaling(clock, recorder):
    config = HealOpsConfig(scaling=ScalingConfig(retry_backoff_seconds=0))
    engine = AutomationEngine(config, clock=clock, fallback_client=recorder)
    recorder.fail_types.add("scale_up")
    try:
        response = engine.submit_scaling_metrics({"cpu": 95, "memory": 50})
        health = engine.health_check()
    finally:
        engine.shutdown()

    assert response["actions"][0].status == "failed"
    assert health["status"] == "degraded"
    assert health["checks"]["automated_scaling"] == "fail"
    assert health["checks"]["intelligent_alerting"] == "pass"
