"""Validation of proposed placements and deterministic repair.

Candidates are checked task by task in priority order, so a higher-priority task
wins a contested slot. Accepted placements consume capacity from a shared
``CapacityMap``; rejected ones get one greedy repair attempt over whatever
capacity remains.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from shedai.engine.dayindex import MINUTES_PER_DAY, is_weekend
from shedai.engine.models import BusyInterval, FreeWindow, Placement, PlacementSource, ScheduledTask, overlaps
from shedai.engine.windows import Span, subtract_span

logger = logging.getLogger(__name__)

MAX_PLACEMENTS_PER_DAY = 2

REASON_UNKNOWN_DAY = "unknown_day"
REASON_PAST_DEADLINE = "past_deadline"
REASON_WEEKEND = "weekend_ineligible"
REASON_TOO_SHORT = "too_short"
REASON_BUSY_OVERLAP = "busy_overlap"
REASON_OUTSIDE_WINDOW = "outside_window"
REASON_PLACEMENT_OVERLAP = "placement_overlap"
REASON_TITLE_COLLISION = "title_collision"
REASON_DAILY_CAP = "daily_cap"
REASON_NO_CAPACITY = "no_capacity"


def normalize_title(title: str) -> str:
    return " ".join((title or "").lower().split())


class CapacityMap:
    """Remaining free time per day; spans shrink as placements consume them."""

    def __init__(self, windows: Mapping[int, Iterable[FreeWindow]]) -> None:
        self._spans: Dict[int, List[Span]] = {
            day: [(window.start_minute, window.end_minute) for window in day_windows]
            for day, day_windows in windows.items()
        }

    def spans(self, day: int) -> List[Span]:
        return list(self._spans.get(day, ()))

    def fits(self, day: int, start: int, end: int) -> bool:
        return any(s <= start and end <= e for s, e in self._spans.get(day, ()))

    def consume(self, day: int, start: int, end: int, *, padding: int = 0) -> None:
        lower = max(0, start - padding)
        upper = min(MINUTES_PER_DAY, end + padding)
        self._spans[day] = subtract_span(self._spans.get(day, ()), lower, upper)


@dataclass
class PlacementBook:
    """Accepted placements plus the per-task and per-day lookups the checks need."""

    placements: List[Placement] = field(default_factory=list)

    def add(self, placement: Placement) -> None:
        self.placements.append(placement)

    def on_day(self, day: int) -> List[Placement]:
        return [p for p in self.placements if p.day == day]

    def for_task(self, task_id: str) -> List[Placement]:
        return [p for p in self.placements if p.task_id == task_id]

    def minutes_for(self, task_id: str, day: Optional[int] = None) -> int:
        return sum(p.duration for p in self.placements if p.task_id == task_id and (day is None or p.day == day))


@dataclass
class ValidationOutcome:
    book: PlacementBook
    capacity: CapacityMap
    accepted: int = 0
    repaired: int = 0
    rejected: int = 0
    reasons: Dict[str, int] = field(default_factory=dict)
    unplaced: List[str] = field(default_factory=list)

    @property
    def placements(self) -> List[Placement]:
        return list(self.book.placements)


def latest_end(task: ScheduledTask, day: int) -> int:
    """Last usable minute on ``day``; a deadline time only binds on the deadline day."""
    if day == task.deadline_day and task.task.deadline_minute is not None:
        return task.task.deadline_minute
    return MINUTES_PER_DAY


def eligible_days(task: ScheduledTask, days: Sequence[int]) -> List[int]:
    return [
        day
        for day in days
        if day <= task.deadline_day and (task.weekend_eligible or not is_weekend(day))
    ]


def requirement_met(task: ScheduledTask, book: PlacementBook, days: Sequence[int]) -> bool:
    if task.require_daily:
        return all(book.minutes_for(task.id, day) >= task.min_block_minutes for day in eligible_days(task, days))
    return book.minutes_for(task.id) >= task.min_block_minutes


class PlacementChecker:
    """Applies the hard rules to one candidate and names the first rule it breaks."""

    def __init__(
        self,
        windows: Mapping[int, Sequence[FreeWindow]],
        busy: Iterable[BusyInterval],
    ) -> None:
        self.windows = windows
        self.busy_by_day: Dict[int, List[BusyInterval]] = defaultdict(list)
        for interval in busy:
            self.busy_by_day[interval.day].append(interval)
        self.busy_titles: Dict[int, Set[str]] = {
            day: {normalize_title(item.title) for item in items} for day, items in self.busy_by_day.items()
        }

    def title_collides(self, task: ScheduledTask, day: int) -> bool:
        return normalize_title(task.title) in self.busy_titles.get(day, set())

    def check(
        self,
        candidate: Placement,
        task: ScheduledTask,
        book: PlacementBook,
        capacity: CapacityMap,
    ) -> Optional[str]:
        day, start, end = candidate.day, candidate.start_minute, candidate.end_minute
        if day not in self.windows:
            return REASON_UNKNOWN_DAY
        if day > task.deadline_day or end > latest_end(task, day):
            return REASON_PAST_DEADLINE
        if is_weekend(day) and not task.weekend_eligible:
            return REASON_WEEKEND
        if end - start < task.min_block_minutes and not candidate.partial:
            return REASON_TOO_SHORT
        if any(overlaps(start, end, b.start_minute, b.end_minute) for b in self.busy_by_day.get(day, ())):
            return REASON_BUSY_OVERLAP
        if not any(window.contains(start, end) for window in self.windows[day]):
            return REASON_OUTSIDE_WINDOW
        if any(overlaps(start, end, p.start_minute, p.end_minute) for p in book.on_day(day)):
            return REASON_PLACEMENT_OVERLAP
        if self.title_collides(task, day):
            return REASON_TITLE_COLLISION
        if sum(1 for p in book.for_task(task.id) if p.day == day) >= MAX_PLACEMENTS_PER_DAY:
            return REASON_DAILY_CAP
        if not capacity.fits(day, start, end):
            return REASON_NO_CAPACITY
        return None


def find_slot(
    task: ScheduledTask,
    capacity: CapacityMap,
    days: Sequence[int],
    *,
    length: int,
    checker: Optional[PlacementChecker] = None,
    skip_days: Iterable[int] = (),
) -> Optional[Tuple[int, int, int]]:
    """Greedy search for ``length`` contiguous minutes, closest to the task's preferred time.

    Returns ``(day, start, end)`` or ``None``. Candidates are ranked by the distance
    between the block midpoint and the preferred minute, then by day and start.
    """
    if length <= 0:
        return None
    skipped = set(skip_days)
    preferred = task.preferred_minute
    best: Optional[Tuple[float, int, int]] = None
    for day in eligible_days(task, days):
        if day in skipped or (checker is not None and checker.title_collides(task, day)):
            continue
        limit = latest_end(task, day)
        for span_start, span_end in capacity.spans(day):
            span_end = min(span_end, limit)
            if span_end - span_start < length:
                continue
            start = min(max(preferred - length // 2, span_start), span_end - length)
            distance = abs(start + length / 2 - preferred)
            key = (distance, day, start)
            if best is None or key < best:
                best = key
    if best is None:
        return None
    _, day, start = best
    return day, start, start + length


def validate_and_repair(
    candidates: Iterable[Placement],
    tasks: Sequence[ScheduledTask],
    windows: Mapping[int, Sequence[FreeWindow]],
    busy: Iterable[BusyInterval],
    *,
    rest_minutes: int = 0,
) -> ValidationOutcome:
    """Accept valid candidates in priority order and repair the rest.

    ``windows`` are the free windows computed from every hard busy interval and
    ``busy`` must include constraint exclusion zones. A rejected candidate is
    repaired with a block of the task's minimum length; if no capacity is left the
    task is reported as unplaced for the backfill stage.
    """
    days = sorted(windows)
    capacity = CapacityMap(windows)
    checker = PlacementChecker(windows, busy)
    book = PlacementBook()
    outcome = ValidationOutcome(book=book, capacity=capacity)

    by_task: Dict[str, List[Placement]] = defaultdict(list)
    for candidate in candidates:
        by_task[candidate.task_id].append(candidate)

    for task in tasks:
        pending = sorted(by_task.get(task.id, ()), key=lambda p: (p.day, p.start_minute))
        needs_repair = 0
        for candidate in pending:
            reason = checker.check(candidate, task, book, capacity)
            if reason is None:
                book.add(candidate)
                capacity.consume(candidate.day, candidate.start_minute, candidate.end_minute, padding=rest_minutes)
                outcome.accepted += 1
                continue
            outcome.rejected += 1
            outcome.reasons[reason] = outcome.reasons.get(reason, 0) + 1
            logger.debug("Rejected %s on day %s: %s", task.id, candidate.day, reason)
            needs_repair += 1

        for _ in range(needs_repair):
            if requirement_met(task, book, days):
                break
            slot = _repair_slot(task, capacity, days, book, checker)
            if slot is None:
                logger.info("No capacity left to repair task %s", task.id)
                break
            day, start, end = slot
            book.add(Placement(task.id, day, start, end, PlacementSource.REPAIR))
            capacity.consume(day, start, end, padding=rest_minutes)
            outcome.repaired += 1

        if not book.for_task(task.id):
            outcome.unplaced.append(task.id)

    logger.info(
        "Validation: accepted=%d repaired=%d rejected=%d unplaced=%d",
        outcome.accepted,
        outcome.repaired,
        outcome.rejected,
        len(outcome.unplaced),
    )
    return outcome


def _repair_slot(
    task: ScheduledTask,
    capacity: CapacityMap,
    days: Sequence[int],
    book: PlacementBook,
    checker: PlacementChecker,
) -> Optional[Tuple[int, int, int]]:
    if task.require_daily:
        # fill the earliest eligible day that is still short
        for day in eligible_days(task, days):
            if book.minutes_for(task.id, day) < task.min_block_minutes:
                slot = find_slot(
                    task,
                    capacity,
                    [day],
                    length=task.min_block_minutes,
                    checker=checker,
                )
                if slot is not None:
                    return slot
        return None
    full_days = [day for day in days if sum(1 for p in book.for_task(task.id) if p.day == day) >= MAX_PLACEMENTS_PER_DAY]
    return find_slot(task, capacity, days, length=task.min_block_minutes, checker=checker, skip_days=full_days)
