"""Urgent-gap backfill: the last pass that force-allocates unmet task time."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from shedai.engine.dayindex import MAX_HORIZON_DAYS
from shedai.engine.models import Placement, PlacementSource, ScheduledTask, Shortfall
from shedai.engine.validator import (
    CapacityMap,
    PlacementBook,
    PlacementChecker,
    eligible_days,
    find_slot,
    latest_end,
)

logger = logging.getLogger(__name__)


@dataclass
class BackfillOutcome:
    added: List[Placement] = field(default_factory=list)
    shortfalls: List[Shortfall] = field(default_factory=list)


def scan_days(task: ScheduledTask, days: Sequence[int], anchor_day: int, span_days: int = MAX_HORIZON_DAYS) -> List[int]:
    """Days from the anchor through ``min(deadline, anchor + span - 1)`` the task may use."""
    last = min(task.deadline_day, anchor_day + span_days - 1)
    return [day for day in eligible_days(task, days) if anchor_day <= day <= last]


def required_minutes(task: ScheduledTask, scan: Sequence[int]) -> int:
    if task.require_daily:
        return task.min_block_minutes * len(scan)
    return task.min_block_minutes


def _largest_span(
    task: ScheduledTask,
    capacity: CapacityMap,
    day: int,
    floor: int,
) -> Optional[Tuple[int, int]]:
    limit = latest_end(task, day)
    best: Optional[Tuple[int, int]] = None
    for start, end in capacity.spans(day):
        end = min(end, limit)
        if end - start < floor:
            continue
        if best is None or end - start > best[1] - best[0]:
            best = (start, end)
    return best


def _place(
    task: ScheduledTask,
    day: int,
    start: int,
    end: int,
    *,
    partial: bool,
    book: PlacementBook,
    capacity: CapacityMap,
    outcome: BackfillOutcome,
    rest_minutes: int,
) -> None:
    placement = Placement(task.id, day, start, end, PlacementSource.BACKFILL, partial=partial)
    book.add(placement)
    capacity.consume(day, start, end, padding=rest_minutes)
    outcome.added.append(placement)
    logger.debug("Backfilled %s on day %s %s-%s (partial=%s)", task.id, day, start, end, partial)


def _partial_chunk(
    task: ScheduledTask,
    capacity: CapacityMap,
    day: int,
    need: int,
    floor: int,
) -> Optional[Tuple[int, int]]:
    span = _largest_span(task, capacity, day, floor)
    if span is None:
        return None
    start, end = span
    length = min(need, end - start)
    # keep the chunk as close to the preferred time as the span allows
    start = min(max(task.preferred_minute - length // 2, start), end - length)
    return start, start + length


def _fill_daily(
    task: ScheduledTask,
    scan: Sequence[int],
    *,
    book: PlacementBook,
    capacity: CapacityMap,
    checker: PlacementChecker,
    outcome: BackfillOutcome,
    floor: int,
    rest_minutes: int,
) -> None:
    for day in scan:
        need = task.min_block_minutes - book.minutes_for(task.id, day)
        if need <= 0 or checker.title_collides(task, day):
            continue
        slot = find_slot(task, capacity, [day], length=need, checker=checker)
        if slot is not None:
            _place(
                task,
                *slot,
                partial=need < task.min_block_minutes,
                book=book,
                capacity=capacity,
                outcome=outcome,
                rest_minutes=rest_minutes,
            )
            continue
        while need > 0:
            chunk = _partial_chunk(task, capacity, day, need, floor)
            if chunk is None:
                break
            _place(
                task,
                day,
                *chunk,
                partial=True,
                book=book,
                capacity=capacity,
                outcome=outcome,
                rest_minutes=rest_minutes,
            )
            need -= chunk[1] - chunk[0]


def _fill_total(
    task: ScheduledTask,
    scan: Sequence[int],
    *,
    book: PlacementBook,
    capacity: CapacityMap,
    checker: PlacementChecker,
    outcome: BackfillOutcome,
    floor: int,
    rest_minutes: int,
) -> None:
    need = task.min_block_minutes - book.minutes_for(task.id)
    if need <= 0:
        return
    # first pass: the earliest day that still holds one contiguous block
    for day in scan:
        if checker.title_collides(task, day):
            continue
        slot = find_slot(task, capacity, [day], length=need, checker=checker)
        if slot is not None:
            _place(
                task,
                *slot,
                partial=need < task.min_block_minutes,
                book=book,
                capacity=capacity,
                outcome=outcome,
                rest_minutes=rest_minutes,
            )
            return
    # last resort: stitch partial chunks together day by day
    for day in scan:
        if need <= 0:
            return
        if checker.title_collides(task, day):
            continue
        while need > 0:
            chunk = _partial_chunk(task, capacity, day, need, floor)
            if chunk is None:
                break
            _place(
                task,
                day,
                *chunk,
                partial=True,
                book=book,
                capacity=capacity,
                outcome=outcome,
                rest_minutes=rest_minutes,
            )
            need -= chunk[1] - chunk[0]


def backfill(
    tasks: Sequence[ScheduledTask],
    book: PlacementBook,
    capacity: CapacityMap,
    checker: PlacementChecker,
    *,
    days: Sequence[int],
    anchor_day: int,
    span_days: int = MAX_HORIZON_DAYS,
    min_partial_minutes: int = 30,
    rest_minutes: int = 0,
) -> BackfillOutcome:
    """Top up every task whose allocation is short, in priority order.

    ``requireDaily`` tasks need ``minBlockMinutes`` on each eligible day through
    their deadline; other tasks need it in total. Only capacity still free after
    validation and repair is used, so no conflict can be introduced. Tasks that
    remain short are reported as shortfalls.
    """
    outcome = BackfillOutcome()
    for task in tasks:
        scan = scan_days(task, days, anchor_day, span_days)
        fill = _fill_daily if task.require_daily else _fill_total
        fill(
            task,
            scan,
            book=book,
            capacity=capacity,
            checker=checker,
            outcome=outcome,
            floor=min_partial_minutes,
            rest_minutes=rest_minutes,
        )

        required = required_minutes(task, scan)
        if task.require_daily:
            allocated = sum(min(book.minutes_for(task.id, day), task.min_block_minutes) for day in scan)
        else:
            allocated = min(book.minutes_for(task.id), required)
        if allocated < required:
            logger.warning(
                "Task %s is short by %d minutes through day %s",
                task.id,
                required - allocated,
                task.deadline_day,
            )
            outcome.shortfalls.append(
                Shortfall(task_id=task.id, title=task.title, required_minutes=required, allocated_minutes=allocated)
            )
    logger.info("Backfill added %d placements, %d shortfalls", len(outcome.added), len(outcome.shortfalls))
    return outcome
