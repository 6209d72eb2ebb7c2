"""Service layer."""

from .engine import CAPABILITIES, AutomationEngine

__all__ = ["CAPABILITIES", "AutomationEngine"]
