"""Automation metrics aggregation."""

from .aggregator import COUNTER_NAMES, GAUGE_NAMES, MetricsAggregator

__all__ = ["COUNTER_NAMES", "GAUGE_NAMES", "MetricsAggregator"]
