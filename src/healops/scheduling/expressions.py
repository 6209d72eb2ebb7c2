"""Recurrence expressions backed by APScheduler triggers.

Supported forms::

    @every 30s | @every 5m | @every 1h | @every 1d
    @hourly | @daily
    daily at 02:00
    */5 * * * *          (crontab, minute first)
    0 0 2 * * *          (seconds first)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Union

from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ..errors import ValidationError

_TIMEZONE = "UTC"
_EVERY = re.compile(r"^@every\s+(\d+)\s*([smhd])$", re.IGNORECASE)
_DAILY_AT = re.compile(r"^daily\s+at\s+(\d{1,2}):(\d{2})$", re.IGNORECASE)
_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days"}
_ALIASES = {"@hourly": "0 * * * *", "@daily": "0 0 * * *", "@midnight": "0 0 * * *"}


@dataclass(frozen=True)
class ScheduleExpression:
    """Parsed recurrence; ``next_after`` is always strictly later than its argument."""

    source: str
    interval: timedelta | None = None
    cron: CronTrigger | None = None

    @classmethod
    def parse(cls, expression: str) -> "ScheduleExpression":
        if not isinstance(expression, str) or not expression.strip():
            raise ValidationError("Schedule expression is required.")
        text = " ".join(expression.split())
        every = _EVERY.match(text)
        if every:
            amount = int(every.group(1))
            if amount <= 0:
                raise ValidationError(f"Interval must be positive: {expression!r}")
            return cls(source=text, interval=timedelta(**{_UNITS[every.group(2).lower()]: amount}))
        daily = _DAILY_AT.match(text)
        if daily:
            hour, minute = int(daily.group(1)), int(daily.group(2))
            if hour > 23 or minute > 59:
                raise ValidationError(f"Invalid time of day: {expression!r}")
            return cls(source=text, cron=_cron(second=0, minute=minute, hour=hour))
        text_cron = _ALIASES.get(text.lower(), text)
        fields = text_cron.split(" ")
        if len(fields) not in (5, 6):
            raise ValidationError(f"Unsupported schedule expression: {expression!r}")
        try:
            if len(fields) == 5:
                trigger = CronTrigger.from_crontab(text_cron, timezone=_TIMEZONE)
            else:
                second, minute, hour, day, month, day_of_week = fields
                trigger = _cron(
                    second=second,
                    minute=minute,
                    hour=hour,
                    day=day,
                    month=month,
                    day_of_week=day_of_week,
                )
        except ValueError as exc:
            raise ValidationError(f"Invalid schedule expression {expression!r}: {exc}") from exc
        return cls(source=text, cron=trigger)

    def next_after(self, now: datetime) -> datetime:
        if self.interval is not None:
            trigger = IntervalTrigger(
                seconds=int(self.interval.total_seconds()),
                start_date=now + self.interval,
                timezone=_TIMEZONE,
            )
            fire = trigger.get_next_fire_time(None, now)
        else:
            # Passing ``now`` as the previous fire time forces a strictly later result.
            fire = self.cron.get_next_fire_time(now, now)
        if fire is None:
            raise ValidationError(f"Schedule {self.source!r} never fires again.")
        return fire

    def __str__(self) -> str:
        return self.source


def _cron(**fields: Union[int, str]) -> CronTrigger:
    return CronTrigger(timezone=_TIMEZONE, **fields)
