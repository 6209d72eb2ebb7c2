"""Automation policies."""

from .store import PolicyStore, estimate_impact

__all__ = ["PolicyStore", "estimate_impact"]
