"""Scaling decisions."""

from .advisor import NO_ACTION, SCALE_DOWN, SCALE_UP, ScalingAdvisor

__all__ = ["NO_ACTION", "SCALE_DOWN", "SCALE_UP", "ScalingAdvisor"]
