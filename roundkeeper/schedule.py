"""Weekly deadline arithmetic.

Inputs and outputs are naive UTC datetimes, matching what the lottery
database stores. The deadline itself is a local wall-clock time, so it stays
at e.g. 17:00 Copenhagen time on both sides of a DST change.
"""
from __future__ import annotations

import datetime as dt
from zoneinfo import ZoneInfo

from .config import ScheduleSettings


def _to_local(moment: dt.datetime, schedule: ScheduleSettings) -> dt.datetime:
    return moment.replace(tzinfo=dt.timezone.utc).astimezone(ZoneInfo(schedule.timezone))


def _to_naive_utc(moment: dt.datetime) -> dt.datetime:
    return moment.astimezone(dt.timezone.utc).replace(tzinfo=None)


def next_deadline(now: dt.datetime, schedule: ScheduleSettings) -> dt.datetime:
    """First weekly deadline strictly after ``now``."""
    tz = ZoneInfo(schedule.timezone)
    local_now = _to_local(now, schedule)
    days_ahead = (schedule.weekday - local_now.weekday()) % 7
    target_day = local_now.date() + dt.timedelta(days=days_ahead)
    candidate = dt.datetime.combine(target_day, dt.time(schedule.hour, schedule.minute), tzinfo=tz)
    if candidate <= local_now:
        candidate = dt.datetime.combine(
            target_day + dt.timedelta(days=7), dt.time(schedule.hour, schedule.minute), tzinfo=tz
        )
    return _to_naive_utc(candidate)


def week_start_for(deadline: dt.datetime, schedule: ScheduleSettings) -> dt.date:
    """A round opens when the previous one closes, one week before its deadline."""
    return _to_local(deadline, schedule).date() - dt.timedelta(days=7)


def seconds_until(target: dt.datetime, now: dt.datetime) -> float:
    return max(0.0, (target - now).total_seconds())
