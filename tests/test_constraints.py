from __future__ import annotations

from shedai.engine.constraints import EventBuffer, parse_constraints
from shedai.engine.models import BusyInterval, Origin
from shedai.engine.patterns import ALL_WEEKDAYS


def test_weekend_denial_in_english_and_korean() -> None:
    assert parse_constraints("No work on weekends.").forbids_weekends
    assert parse_constraints("주말에는 쉬고 싶어").forbids_weekends
    assert parse_constraints("Weekends are fine for me.").weekend_allowed is True


def test_denial_wins_over_allowance() -> None:
    constraints = parse_constraints("Weekends are fine. Actually, no work on weekends.")
    assert constraints.forbids_weekends


def test_cutoff_followed_by_weekend_allowance_keeps_both() -> None:
    constraints = parse_constraints("No work after 10pm and weekends are fine.")
    assert constraints.weekend_allowed is True
    assert constraints.recognized == ("weekend_allow", "cutoff_after")
    assert [(b.start_minute, b.end_minute, b.weekdays) for b in constraints.blackouts] == [(1320, 1440, ALL_WEEKDAYS)]


def test_cutoff_scoped_to_weekends_is_not_a_weekend_ban() -> None:
    constraints = parse_constraints("No work after 10pm on weekends.")
    assert constraints.weekend_allowed is None
    assert constraints.recognized == ("cutoff_after",)
    zones = constraints.exclusion_zones([], [5, 6, 7])
    assert [(z.day, z.start_minute, z.end_minute) for z in zones] == [(6, 1320, 1440), (7, 1320, 1440)]


def test_negated_can_is_not_a_weekend_allowance() -> None:
    assert parse_constraints("I can't do weekends.").forbids_weekends
    assert parse_constraints("Never schedule anything on the weekend.").forbids_weekends


def test_time_preference_biases_preferred_minute() -> None:
    assert parse_constraints("I prefer to work in the morning.").preferred_minute == 9 * 60
    assert parse_constraints("Ideally around 8pm.").preferred_minute == 20 * 60


def test_rest_gap() -> None:
    assert parse_constraints("I need a 30 minute break between tasks.").rest_minutes == 30
    assert parse_constraints("Leave a break of at least 1 hour.").rest_minutes == 60


def test_cutoff_becomes_blackout_zone() -> None:
    constraints = parse_constraints("No work after 10pm.")
    zones = constraints.exclusion_zones([], [1, 2])
    assert [(z.day, z.start_minute, z.end_minute) for z in zones] == [(1, 1320, 1440), (2, 1320, 1440)]
    assert all(zone.origin is Origin.CONSTRAINT for zone in zones)


def test_meal_blackout_uses_default_window() -> None:
    constraints = parse_constraints("Keep my lunch free.")
    zones = constraints.exclusion_zones([], [3])
    assert [(z.start_minute, z.end_minute) for z in zones] == [(720, 780)]


def test_event_buffer_after_matching_busy_titles() -> None:
    constraints = parse_constraints("No work within 1 hour after work.")
    assert constraints.event_buffers == (EventBuffer(event="work", minutes=60, after=True),)
    busy = [BusyInterval(1, 540, 1080, "office"), BusyInterval(1, 1200, 1260, "Gym")]
    zones = constraints.exclusion_zones(busy, [1])
    assert [(z.start_minute, z.end_minute) for z in zones] == [(1080, 1140)]


def test_unrecognised_sentences_become_soft_guidance() -> None:
    constraints = parse_constraints("Please keep things light this week. No work on weekends.")
    assert constraints.soft_guidance == ("Please keep things light this week.",)
    assert "weekend_deny" in constraints.recognized


def test_empty_text() -> None:
    constraints = parse_constraints(None)
    assert constraints.weekend_allowed is None
    assert constraints.exclusion_zones([], [1]) == []
