from datetime import datetime, timedelta, timezone

import pytest

from healops.config import SchedulerConfig
from healops.errors import NotFoundError, ValidationError
from healops.scheduling import ScheduleExpression, Scheduler
from healops.workflows import StepActionRegistry, StepExecutor, WorkflowRegistry, WorkflowRunCoordinator

START = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def handlers(action_executor):
    handlers = StepActionRegistry(action_executor, include_builtins=False)
    handlers.register("noop", lambda step, ctx: {})

    def broken(step, ctx):
        raise RuntimeError("backend unavailable")

    handlers.register("broken", broken)
    return handlers


@pytest.fixture
def registry(clock):
    registry = WorkflowRegistry(clock=clock)
    registry.register({"id": "ok", "name": "ok", "steps": [{"action": "noop", "retry_count": 0}]})
    registry.register({"id": "bad", "name": "bad", "steps": [{"action": "broken", "retry_count": 0}]})
    return registry


@pytest.fixture
def scheduler(registry, handlers, clock):
    coordinator = WorkflowRunCoordinator(registry, StepExecutor(handlers, clock=clock), clock=clock)
    scheduler = Scheduler(
        coordinator,
        registry,
        config=SchedulerConfig(retry_backoff_seconds=2.0),
        clock=clock,
    )
    yield scheduler
    scheduler.stop()
    coordinator.shutdown()


class TestScheduleExpression:
    def test_interval_is_relative_to_now(self):
        expression = ScheduleExpression.parse("@every 5m")

        assert expression.next_after(START) == START + timedelta(minutes=5)

    def test_six_field_cron_fires_at_next_two_am(self):
        expression = ScheduleExpression.parse("0 0 2 * * *")

        assert expression.next_after(START.replace(hour=1)) == START.replace(hour=2)

    def test_next_is_strictly_after_an_exact_match(self):
        expression = ScheduleExpression.parse("0 0 2 * * *")

        assert expression.next_after(START.replace(hour=2)) == START.replace(hour=2) + timedelta(days=1)

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("*/15 * * * *", START + timedelta(minutes=15)),
            ("@hourly", START + timedelta(hours=1)),
            ("daily at 03:30", START.replace(hour=3, minute=30)),
        ],
    )
    def test_other_forms(self, text, expected):
        assert ScheduleExpression.parse(text).next_after(START) == expected

    @pytest.mark.parametrize("text", ["", "@every 0m", "every day", "61 * * * *", "daily at 25:00", "* * *"])
    def test_invalid_expressions_raise(self, text):
        with pytest.raises(ValidationError):
            ScheduleExpression.parse(text)


def test_new_schedule_fires_one_interval_later(scheduler, clock):
    schedule = scheduler.schedule("ok", "@every 5m")

    assert schedule.next_run == START + timedelta(minutes=5)
    assert scheduler.tick() == []

    clock.advance(minutes=5)
    firings = scheduler.tick()

    assert [f.status for f in firings] == ["completed"]
    assert schedule.last_run == clock.now()
    assert schedule.next_run == clock.now() + timedelta(minutes=5)


def test_missed_occurrences_are_not_backfilled(scheduler, clock):
    schedule = scheduler.schedule("ok", "@every 5m")

    clock.advance(minutes=30)
    firings = scheduler.tick()

    assert len(firings) == 1
    assert schedule.next_run > clock.now()
    assert scheduler.tick() == []


def test_failures_back_off_then_resume_cadence(scheduler, clock):
    schedule = scheduler.schedule("bad", "@every 5m", max_retries=2)

    clock.advance(minutes=5)
    first = scheduler.tick()
    assert first[0].status == "failed"
    assert schedule.retry_attempt == 1
    assert schedule.next_run == clock.now() + timedelta(seconds=2)

    clock.advance(seconds=2)
    scheduler.tick()
    assert schedule.retry_attempt == 2
    assert schedule.next_run == clock.now() + timedelta(seconds=4)

    clock.advance(seconds=4)
    scheduler.tick()
    assert schedule.retry_attempt == 0
    assert schedule.next_run == clock.now() + timedelta(minutes=5)
    assert "backend unavailable" in schedule.last_error


def test_disabled_schedule_does_not_fire_and_enable_skips_missed_runs(scheduler, clock):
    schedule = scheduler.schedule("ok", "@every 5m")
    scheduler.disable(schedule.id)

    clock.advance(hours=1)
    assert scheduler.tick() == []
    assert scheduler.enabled_count() == 0

    scheduler.enable(schedule.id)
    assert schedule.next_run == clock.now() + timedelta(minutes=5)
    assert scheduler.tick() == []


def test_update_replaces_expression(scheduler, clock):
    schedule = scheduler.schedule("ok", "@every 5m")

    scheduler.update(schedule.id, expression="@every 1h", name="hourly ok")

    assert schedule.expression == "@every 1h"
    assert schedule.name == "hourly ok"
    assert schedule.next_run == START + timedelta(hours=1)


def test_schedule_validation(scheduler):
    with pytest.raises(NotFoundError):
        scheduler.schedule("missing", "@every 5m")
    with pytest.raises(ValidationError):
        scheduler.schedule("ok", "whenever")
    with pytest.raises(ValidationError):
        scheduler.schedule("ok", "@every 5m", max_retries=-1)
    with pytest.raises(NotFoundError):
        scheduler.get("schedule_missing")
    assert scheduler.list() == []


def test_background_loop_starts_and_stops(scheduler):
    scheduler.start()
    assert scheduler.running

    scheduler.stop()
    assert not scheduler.running
