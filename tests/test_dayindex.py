from __future__ import annotations

from datetime import date

import pytest

from shedai.engine.dayindex import (
    anchor_day_for,
    date_for_day,
    day_for_date,
    format_clock,
    horizon_days,
    is_weekend,
    parse_clock,
    weekday_name,
    weekday_of,
)
from shedai.engine.errors import InvalidHorizonError

MONDAY = date(2026, 10, 19)


def test_weekday_wraps_linearly() -> None:
    assert [weekday_of(day) for day in (1, 6, 7, 8, 14, 15)] == [1, 6, 7, 1, 7, 1]
    assert weekday_name(8) == "Monday"
    assert is_weekend(6) and is_weekend(13)
    assert not is_weekend(5)


def test_anchor_and_date_conversion_round_trip() -> None:
    wednesday = date(2026, 10, 21)
    assert anchor_day_for(MONDAY) == 1
    assert anchor_day_for(wednesday) == 3
    assert date_for_day(wednesday, 8) == date(2026, 10, 26)
    assert day_for_date(wednesday, date(2026, 10, 26)) == 8


def test_horizon_bounds_are_enforced() -> None:
    assert horizon_days(3, 3) == [3, 4, 5]
    assert len(horizon_days(1, 28)) == 28
    with pytest.raises(ValueError):
        horizon_days(1, 0)
    with pytest.raises(InvalidHorizonError) as excinfo:
        horizon_days(1, 35)
    assert excinfo.value.requested == 35
    assert excinfo.value.maximum == 28


def test_clock_parsing() -> None:
    assert parse_clock("07:30") == 450
    assert parse_clock("9") == 540
    assert parse_clock("24:00") == 1440
    assert format_clock(1140) == "19:00"
    for bad in ("25:00", "12:60", "noon", "24:30"):
        with pytest.raises(ValueError):
            parse_clock(bad)
