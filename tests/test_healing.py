import pytest

from healops.errors import NotFoundError, ValidationError
from healops.healing import RuleStore, SelfHealingEngine, default_rules
from healops.metrics import MetricsAggregator


@pytest.fixture
def metrics(clock):
    return MetricsAggregator(clock=clock)


def _engine(rules, action_executor, metrics, clock, **kwargs):
    return SelfHealingEngine(RuleStore(rules), action_executor, metrics=metrics, clock=clock, **kwargs)


def test_memory_issue_runs_memory_rule_actions(action_executor, recorder, metrics, clock):
    engine = _engine(default_rules(), action_executor, metrics, clock)

    report = engine.react({"memory_usage": 95})

    assert report.status == "healing_applied"
    assert report.rules_applied == 1
    assert recorder.types == ["restart_service", "clear_cache", "notify_admin"]
    assert report.healing_actions[0].target == "memory-intensive-service"
    assert report.estimated_recovery_time == 90
    assert metrics.value("self_healing_events") == 1
    assert metrics.value("automated_actions") == 3


def test_rules_run_in_priority_order_with_stable_ties(action_executor, recorder, metrics, clock):
    rules = [
        {"id": "r1", "name": "R1", "condition": "load > 1", "priority": "high", "actions": ["first_high"]},
        {"id": "r2", "name": "R2", "condition": "load > 1", "priority": "critical", "actions": ["critical"]},
        {"id": "r3", "name": "R3", "condition": "load > 1", "priority": "high", "actions": ["second_high"]},
        {"id": "r4", "name": "R4", "condition": "load > 1", "priority": "low", "actions": ["low"]},
    ]
    engine = _engine(rules, action_executor, metrics, clock)

    report = engine.react({"load": 5})

    assert [record.rule_id for record in report.healing_actions] == ["r2", "r1", "r3", "r4"]
    assert recorder.types == ["critical", "first_high", "second_high", "low"]


def test_no_matching_rule(action_executor, recorder, metrics, clock):
    engine = _engine(default_rules(), action_executor, metrics, clock)

    report = engine.react({"memory_usage": 40})

    assert report.status == "no_rules_found"
    assert report.healing_actions == ()
    assert recorder.calls == []
    assert metrics.value("self_healing_events") == 0


def test_cpu_rule_needs_sustained_load(action_executor, recorder, metrics, clock):
    engine = _engine(default_rules(), action_executor, metrics, clock)

    assert engine.react({"cpu_usage": 99}).status == "no_rules_found"

    report = engine.react({"cpu_usage": 99, "cpu_usage_duration_seconds": 360})
    assert [record.action for record in report.healing_actions] == ["scale_up", "prioritize_critical", "alert_team"]


def test_failed_action_does_not_stop_the_rest(action_executor, recorder, metrics, clock):
    recorder.raise_types.add("restart_service")
    engine = _engine(default_rules(), action_executor, metrics, clock)

    report = engine.react({"memory_usage": 99})

    assert [record.status for record in report.healing_actions] == ["failed", "success", "success"]
    assert report.actions_failed == 1
    assert metrics.value("healing_actions_failed") == 1


def test_disabled_rules_are_ignored(action_executor, recorder, metrics, clock):
    engine = _engine(default_rules(), action_executor, metrics, clock)
    engine.rules.disable("memory-leak-fix")

    assert engine.react({"memory_usage": 99}).status == "no_rules_found"

    engine.rules.enable("memory-leak-fix")
    assert engine.react({"memory_usage": 99}).status == "healing_applied"


def test_condition_errors_skip_the_rule(action_executor, recorder, metrics, clock):
    def explode(context):
        raise KeyError("signal")

    rules = [
        {"id": "bad", "name": "Bad", "condition": explode, "actions": ["never"]},
        {"id": "good", "name": "Good", "condition": "x > 0", "actions": ["fix"]},
    ]
    engine = _engine(rules, action_executor, metrics, clock)

    report = engine.react({"x": 1})

    assert recorder.types == ["fix"]
    assert report.rules_applied == 1


def test_workflow_action_goes_through_runner(action_executor, recorder, metrics, clock):
    calls = []

    class Result:
        succeeded = True
        run_id = "run_1"

    def runner(workflow_id, input):
        calls.append((workflow_id, input))
        return Result()

    rules = [
        {
            "id": "wf",
            "name": "Run workflow",
            "condition": "errors > 0",
            "actions": [{"type": "run_workflow", "target": "system-health-check", "parameters": {"why": "errors"}}],
        }
    ]
    engine = _engine(rules, action_executor, metrics, clock, workflow_runner=runner)

    report = engine.react({"errors": 3})

    assert calls == [("system-health-check", {"errors": 3, "why": "errors"})]
    assert report.healing_actions[0].status == "success"
    assert recorder.calls == []


@pytest.mark.parametrize(
    "payload",
    [
        {"name": "", "condition": "x > 1", "actions": ["a"]},
        {"name": "n", "condition": "x > 1", "actions": []},
        {"name": "n", "condition": "x >", "actions": ["a"]},
        {"name": "n", "condition": "x > 1", "actions": ["a"], "priority": "urgent"},
        {"name": "n", "condition": "x > 1", "actions": [{"target": "t"}]},
    ],
)
def test_invalid_rules_are_rejected(payload):
    with pytest.raises(ValidationError):
        RuleStore([payload])


def test_rule_store_lookup():
    store = RuleStore(default_rules())

    assert len(store) == 3
    assert store.enabled_count() == 3
    with pytest.raises(ValidationError):
        store.add(default_rules()[0])
    with pytest.raises(NotFoundError):
        store.get("missing")
