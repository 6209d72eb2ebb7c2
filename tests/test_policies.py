import pytest

from healops.errors import NotFoundError, ValidationError
from healops.events import EngineEvent
from healops.policies import PolicyStore, estimate_impact


def _event(clock, event_type="alert.processed", **signals):
    return EngineEvent(type=event_type, payload={}, timestamp=clock.now(), signals=signals)


def test_create_reports_rules_and_impact(clock):
    store = PolicyStore(clock=clock)

    created = store.create(
        {
            "name": "Page on critical alerts",
            "rules": [{"condition": "severity == 'critical'", "actions": ["page_oncall"]}],
        }
    )

    assert created["status"] == "created"
    assert created["rules_count"] == 1
    assert created["estimated_impact"] == estimate_impact(1, 1, "medium")
    assert 1 <= created["estimated_impact"] <= 10
    assert store.get(created["policy_id"]).created_at == clock.now()


@pytest.mark.parametrize(
    "payload",
    [
        {"name": "", "rules": [{"condition": "x > 1"}]},
        {"name": "p", "rules": []},
        {"name": "p", "rules": "x > 1"},
        {"name": "p", "rules": [{"condition": "x >"}]},
        {"name": "p", "rules": [{"condition": "x > 1"}], "priority": "whenever"},
    ],
)
def test_invalid_policies_are_rejected(clock, payload):
    store = PolicyStore(clock=clock)

    with pytest.raises(ValidationError):
        store.create(payload)

    assert store.list() == []


def test_observe_counts_matching_triggers(clock):
    store = PolicyStore(clock=clock)
    policy_id = store.create(
        {
            "name": "critical alerts",
            "events": "alert.processed",
            "rules": [{"condition": "severity == 'critical'"}],
        }
    )["policy_id"]

    assert store.observe(_event(clock, severity="low")) == []
    assert store.observe(_event(clock, "scaling.evaluated", severity="critical")) == []
    assert store.observe(_event(clock, severity="critical")) == [policy_id]

    policy = store.get(policy_id)
    assert policy.trigger_count == 1
    assert policy.last_triggered == clock.now()


def test_disabled_policies_do_not_trigger(clock):
    store = PolicyStore(clock=clock)
    policy_id = store.create({"name": "any", "rules": [{"actions": ["noop"]}]})["policy_id"]

    store.disable(policy_id)
    assert store.observe(_event(clock)) == []
    assert store.active_count() == 0

    store.enable(policy_id)
    assert store.observe(_event(clock)) == [policy_id]


def test_unknown_policy(clock):
    with pytest.raises(NotFoundError):
        PolicyStore(clock=clock).disable("policy_missing")
