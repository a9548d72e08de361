from __future__ import annotations

from datetime import date

from shedai.engine.models import Level, TaskKind
from shedai.engine.records import normalize_tasks

WEDNESDAY = date(2026, 10, 21)


def test_records_accept_camel_case_and_korean_levels() -> None:
    tasks, dropped = normalize_tasks(
        [{"id": 7, "title": "  Thesis  ", "deadlineDay": 5, "importance": "상", "difficulty": "중"}],
        anchor_date=WEDNESDAY,
    )
    assert dropped == []
    task = tasks[0]
    assert (task.id, task.title, task.deadline_day) == ("7", "Thesis", 5)
    assert task.importance is Level.HIGH and task.difficulty is Level.MEDIUM


def test_iso_deadline_converts_to_day_index() -> None:
    tasks, _ = normalize_tasks([{"title": "Essay", "deadline": "2026-10-26"}], anchor_date=WEDNESDAY)
    assert tasks[0].deadline_day == 8
    assert tasks[0].id == "t1"


def test_appointment_detection() -> None:
    tasks, _ = normalize_tasks(
        [
            {"title": "Dentist", "deadline_day": 4, "type": "appointment"},
            {"title": "Team meeting", "deadline_day": 4, "deadline_time": "15:00", "estimatedMinutes": 45},
            {"title": "Write essay", "deadline_day": 4, "deadline_time": "15:00"},
        ],
        anchor_date=WEDNESDAY,
    )
    dentist, meeting, essay = tasks
    assert dentist.kind is TaskKind.FIXED_APPOINTMENT and dentist.deadline_minute == 720
    assert meeting.kind is TaskKind.FIXED_APPOINTMENT and meeting.duration_minutes == 45
    assert essay.kind is TaskKind.FLEXIBLE and essay.deadline_minute == 900


def test_malformed_records_are_dropped_and_duplicates_collapse() -> None:
    tasks, dropped = normalize_tasks(
        [
            {"title": "Essay", "deadline_day": 5},
            {"title": "essay", "deadline_day": 5},
            {"title": "No deadline"},
            {"title": "Bad level", "deadline_day": 5, "importance": "urgent!!"},
            "not a record",
        ],
        anchor_date=WEDNESDAY,
    )
    assert [t.title for t in tasks] == ["Essay"]
    assert dropped == ["task[2]", "task[3]", "task[4]"]


def test_generated_ids_skip_explicit_ids_of_later_records() -> None:
    tasks, dropped = normalize_tasks(
        [
            {"title": "Essay", "deadline_day": 5},
            {"id": "t1", "title": "Reading", "deadline_day": 6},
            {"title": "Slides", "deadline_day": 7},
        ],
        anchor_date=WEDNESDAY,
    )
    assert dropped == []
    assert [(t.id, t.title) for t in tasks] == [("t2", "Essay"), ("t1", "Reading"), ("t3", "Slides")]
