"""Predictive maintenance risk assessment."""

from .analyzer import CATEGORIES, CategoryPolicy, PredictiveMaintenanceAnalyzer, SignalSpec

__all__ = ["CATEGORIES", "CategoryPolicy", "PredictiveMaintenanceAnalyzer", "SignalSpec"]
