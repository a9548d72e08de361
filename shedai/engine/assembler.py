"""Merge busy intervals and placements into the outbound day-by-day schedule."""
from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from shedai.engine.dayindex import date_for_day, weekday_name
from shedai.engine.errors import IncompleteScheduleError
from shedai.engine.models import Activity, ActivityKind, BusyInterval, Origin, Placement, ScheduleDay
from shedai.engine.windows import Span, subtract_span

logger = logging.getLogger(__name__)

_ORIGIN_KIND = {
    Origin.PATTERN: ActivityKind.LIFESTYLE,
    Origin.FIXED_EVENT: ActivityKind.APPOINTMENT,
}
# lower wins when two busy entries claim the same minutes
_KIND_PRECEDENCE = {ActivityKind.APPOINTMENT: 0, ActivityKind.TASK: 1, ActivityKind.LIFESTYLE: 2}


def _candidates(
    day: int,
    busy: Iterable[BusyInterval],
    placements: Iterable[Placement],
    titles: Mapping[str, str],
) -> List[Activity]:
    activities: List[Activity] = []
    for interval in busy:
        if interval.day != day or interval.origin is Origin.CONSTRAINT:
            continue
        activities.append(
            Activity(interval.start_minute, interval.end_minute, interval.title, _ORIGIN_KIND[interval.origin])
        )
    for placement in placements:
        if placement.day != day:
            continue
        activities.append(
            Activity(
                placement.start_minute,
                placement.end_minute,
                titles.get(placement.task_id, placement.task_id),
                ActivityKind.TASK,
                task_id=placement.task_id,
                partial=placement.partial,
            )
        )
    return activities


def _resolve_overlaps(activities: Sequence[Activity]) -> List[Activity]:
    """Trim overlapping entries so the day never shows two things at once.

    Appointments keep their minutes first, then tasks, then lifestyle blocks;
    a lower-precedence entry is cut around what is already kept.
    """
    kept: List[Activity] = []
    claimed: List[Span] = []
    ordered = sorted(activities, key=lambda a: (_KIND_PRECEDENCE[a.kind], a.start_minute, a.end_minute, a.title))
    for activity in ordered:
        pieces = [(activity.start_minute, activity.end_minute)]
        for start, end in claimed:
            pieces = subtract_span(pieces, start, end)
        if pieces != [(activity.start_minute, activity.end_minute)]:
            logger.debug("Trimmed overlapping %s %r", activity.kind.value, activity.title)
        for start, end in pieces:
            kept.append(
                Activity(start, end, activity.title, activity.kind, task_id=activity.task_id, partial=activity.partial)
            )
            claimed.append((start, end))
    kept.sort(key=lambda a: (a.start_minute, a.end_minute, a.title))
    return kept


def assemble_schedule(
    days: Sequence[int],
    busy: Iterable[BusyInterval],
    placements: Iterable[Placement],
    titles: Mapping[str, str],
    *,
    anchor_date: Optional[date] = None,
) -> Tuple[ScheduleDay, ...]:
    """Emit one ``ScheduleDay`` per requested day, activities sorted by start.

    Raises ``IncompleteScheduleError`` when the result does not cover every
    requested day, most importantly the last one.
    """
    if not days:
        raise IncompleteScheduleError("no days were requested", missing_days=[])

    busy = list(busy)
    placements = list(placements)
    emitted: Dict[int, ScheduleDay] = {}
    for day in days:
        activities = _resolve_overlaps(_candidates(day, busy, placements, titles))
        emitted[day] = ScheduleDay(
            day=day,
            weekday=weekday_name(day),
            date=date_for_day(anchor_date, day).isoformat() if anchor_date else None,
            activities=tuple(activities),
        )

    missing = [day for day in days if day not in emitted]
    if missing or days[-1] not in emitted:
        raise IncompleteScheduleError(
            f"schedule is missing day(s) {missing} of the requested horizon",
            missing_days=missing,
        )
    return tuple(emitted[day] for day in days)
