import pytest

from healops.predictive import PredictiveMaintenanceAnalyzer
from healops.telemetry import StaticTelemetrySource


def test_high_memory_alone_is_critical_and_other_categories_are_uncertain(clock):
    analyzer = PredictiveMaintenanceAnalyzer(clock=clock)

    assessment = analyzer.assess({"memory_usage": 95}, system="web-1")

    assert assessment.scores["memory"] == pytest.approx(0.9)
    memory = [r for r in assessment.recommendations if r.category == "memory"][0]
    assert memory.action == "memory_upgrade"
    assert memory.priority == "critical"
    assert memory.timeframe == "0-3 days"
    assert assessment.uncertainty["memory"] == pytest.approx(2 / 3, abs=1e-3)
    assert assessment.uncertainty["disk"] == 1.0
    assert {r.action for r in assessment.recommendations if r.category != "memory"} == {"collect_telemetry"}
    assert assessment.maintenance_scheduled
    assert assessment.system == "web-1"


def test_healthy_snapshot_schedules_nothing(clock):
    analyzer = PredictiveMaintenanceAnalyzer(clock=clock)

    assessment = analyzer.assess(
        {
            "memory_usage": 40,
            "memory_growth_rate": 0,
            "swap_usage": 0,
            "disk_usage": 30,
            "disk_io_errors": 0,
            "disk_latency_ms": 5,
            "packet_loss": 0,
            "network_latency_ms": 20,
            "connection_failures": 0,
        }
    )

    assert assessment.recommendations == ()
    assert not assessment.maintenance_scheduled
    assert set(assessment.uncertainty.values()) == {0.0}
    assert assessment.confidence == pytest.approx(94.2)


def test_disk_threshold_gives_preventive_recommendation(clock):
    analyzer = PredictiveMaintenanceAnalyzer(clock=clock)

    assessment = analyzer.assess({"disk_usage": 100, "disk_io_errors": 5, "disk_latency_ms": 55})

    disk = [r for r in assessment.recommendations if r.category == "disk"][0]
    assert disk.action == "disk_replacement"
    assert disk.priority == "medium"
    assert disk.timeframe == "14-30 days"


def test_scores_never_decrease_as_a_signal_worsens(clock):
    analyzer = PredictiveMaintenanceAnalyzer(clock=clock)

    scores = [analyzer.assess({"memory_usage": value}).scores["memory"] for value in range(0, 101, 10)]

    assert scores == sorted(scores)
    assert 0.0 <= scores[0] and scores[-1] <= 1.0


def test_empty_snapshot_pulls_from_telemetry(clock):
    telemetry = StaticTelemetrySource({"packet_loss": 5, "network_latency_ms": 500, "connection_failures": 20})
    analyzer = PredictiveMaintenanceAnalyzer(telemetry=telemetry, clock=clock)

    assessment = analyzer.assess()

    assert assessment.scores["network"] == 1.0
    assert any(r.action == "network_optimization" and r.priority == "critical" for r in assessment.recommendations)
