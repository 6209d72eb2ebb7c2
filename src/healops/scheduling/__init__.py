"""Recurring workflow scheduling."""

from .expressions import ScheduleExpression
from .scheduler import Scheduler

__all__ = ["ScheduleExpression", "Scheduler"]
