"""Relative day-index model and clock helpers.

Day 1 is Monday and day 7 is Sunday; larger indexes continue linearly so day 8
is the following Monday. The anchor day is the index of "today" and every date
conversion is made relative to it.
"""
from __future__ import annotations

import re
from datetime import date, timedelta
from typing import List

from shedai.engine.errors import InvalidHorizonError

MINUTES_PER_DAY = 24 * 60
MAX_HORIZON_DAYS = 28

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

_CLOCK_RE = re.compile(r"^\s*(\d{1,2})(?::(\d{1,2}))?\s*$")


def weekday_of(day: int) -> int:
    """Return the 1..7 weekday (Mon..Sun) of a relative day index."""
    return ((day - 1) % 7) + 1


def is_weekend(day: int) -> bool:
    return weekday_of(day) in (6, 7)


def weekday_name(day: int) -> str:
    return WEEKDAY_NAMES[weekday_of(day) - 1]


def anchor_day_for(anchor_date: date) -> int:
    """The anchor index is the weekday of the anchor date, so Monday anchors at 1."""
    return anchor_date.isoweekday()


def date_for_day(anchor_date: date, day: int) -> date:
    return anchor_date + timedelta(days=day - anchor_day_for(anchor_date))


def day_for_date(anchor_date: date, target: date) -> int:
    return anchor_day_for(anchor_date) + (target - anchor_date).days


def horizon_days(anchor_day: int, horizon: int) -> List[int]:
    """Return the day indexes covered by a horizon of at most four weeks."""
    if horizon < 1 or horizon > MAX_HORIZON_DAYS:
        raise InvalidHorizonError(horizon, MAX_HORIZON_DAYS)
    return list(range(anchor_day, anchor_day + horizon))


def parse_clock(value: str) -> int:
    """Parse ``HH:MM`` (or a bare hour) into minutes after midnight; accepts 24:00."""
    match = _CLOCK_RE.match(str(value or ""))
    if not match:
        raise ValueError(f"invalid clock time: {value!r}")
    hours = int(match.group(1))
    minutes = int(match.group(2) or 0)
    if minutes > 59 or hours > 24 or (hours == 24 and minutes):
        raise ValueError(f"invalid clock time: {value!r}")
    return hours * 60 + minutes


def format_clock(minutes: int) -> str:
    if minutes < 0 or minutes > MINUTES_PER_DAY:
        raise ValueError(f"minute offset out of range: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"
