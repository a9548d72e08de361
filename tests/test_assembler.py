from __future__ import annotations

from datetime import date

import pytest

from shedai.engine.assembler import assemble_schedule
from shedai.engine.errors import IncompleteScheduleError
from shedai.engine.models import ActivityKind, BusyInterval, Origin, Placement


def test_days_are_emitted_in_order_with_sorted_activities() -> None:
    busy = [BusyInterval(1, 420, 480, "Breakfast"), BusyInterval(2, 0, 420, "Sleep")]
    placements = [Placement("t1", 1, 1080, 1200), Placement("t1", 1, 600, 660, partial=True)]
    days = assemble_schedule([1, 2], busy, placements, {"t1": "Essay"}, anchor_date=date(2026, 10, 19))

    assert [day.day for day in days] == [1, 2]
    assert days[0].weekday == "Monday"
    assert days[1].date == "2026-10-20"
    assert [(a.start_minute, a.title, a.kind) for a in days[0].activities] == [
        (420, "Breakfast", ActivityKind.LIFESTYLE),
        (600, "Essay", ActivityKind.TASK),
        (1080, "Essay", ActivityKind.TASK),
    ]
    assert days[0].activities[1].to_payload() == {
        "start": "10:00",
        "end": "11:00",
        "title": "Essay",
        "kind": "task",
        "task_id": "t1",
        "partial": True,
    }


def test_constraint_zones_are_not_rendered() -> None:
    busy = [BusyInterval(1, 1320, 1440, "no work after 10pm", Origin.CONSTRAINT)]
    (day,) = assemble_schedule([1], busy, [], {})
    assert day.activities == ()
    assert day.date is None


def test_overlaps_are_trimmed_by_precedence() -> None:
    busy = [
        BusyInterval(1, 600, 720, "Commute"),
        BusyInterval(1, 660, 690, "Dentist", Origin.FIXED_EVENT),
    ]
    (day,) = assemble_schedule([1], busy, [], {})
    assert [(a.start_minute, a.end_minute, a.title) for a in day.activities] == [
        (600, 660, "Commute"),
        (660, 690, "Dentist"),
        (690, 720, "Commute"),
    ]
    for first, second in zip(day.activities, day.activities[1:]):
        assert first.end_minute <= second.start_minute


def test_empty_horizon_is_an_error() -> None:
    with pytest.raises(IncompleteScheduleError) as exc_info:
        assemble_schedule([], [], [], {})
    assert exc_info.value.missing_days == []
