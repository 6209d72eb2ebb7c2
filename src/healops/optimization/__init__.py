"""Optimization planning and execution."""

from .planner import (
    DEFAULT_CATALOG,
    IMPACT_WEIGHTS,
    CatalogEntry,
    OptimizationPlanner,
    weighted_gain,
)

__all__ = [
    "DEFAULT_CATALOG",
    "IMPACT_WEIGHTS",
    "CatalogEntry",
    "OptimizationPlanner",
    "weighted_gain",
]
