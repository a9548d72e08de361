"""Urgency scoring, minimum block sizing and priority ordering for tasks."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Sequence, Tuple

from shedai.engine.config import EngineConfig
from shedai.engine.constraints import ConstraintSet
from shedai.engine.dayindex import MINUTES_PER_DAY
from shedai.engine.models import BusyInterval, Level, Origin, ScheduledTask, Task, TaskKind, Urgency

logger = logging.getLogger(__name__)

BASE_BLOCK_MINUTES = 60
FOCUSED_BLOCK_MINUTES = 120
SITTING_BLOCK_MINUTES = 150
DEEP_SITTING_BLOCK_MINUTES = 180

# Titles that describe a deliverable worth finishing in one sitting.
FINISHABLE_KEYWORDS = (
    "report",
    "essay",
    "assignment",
    "homework",
    "presentation",
    "slides",
    "proposal",
    "paper",
    "draft",
    "review",
    "exam",
    "test",
    "portfolio",
    "resume",
    "application",
    "시험",
    "과제",
    "발표",
    "보고서",
    "레포트",
    "리포트",
    "작성",
    "정리",
    "리뷰",
    "모의고사",
    "포트폴리오",
    "자기소개서",
    "이력서",
    "완성",
)


@dataclass(frozen=True)
class PrioritizedTasks:
    tasks: Tuple[ScheduledTask, ...]
    appointments: Tuple[BusyInterval, ...]
    dropped: Tuple[str, ...] = ()

    def by_id(self) -> dict:
        return {item.id: item for item in self.tasks}


def urgency_for(days_until_deadline: int) -> Urgency:
    if days_until_deadline <= 1:
        return Urgency.CRITICAL
    if days_until_deadline <= 3:
        return Urgency.HIGH
    if days_until_deadline <= 5:
        return Urgency.MEDIUM
    return Urgency.LOW


def is_finishable(title: str) -> bool:
    lowered = (title or "").lower()
    return any(keyword in lowered for keyword in FINISHABLE_KEYWORDS)


def derive_min_block(task: Task, urgency: Urgency) -> int:
    """Pick the minimum contiguous block; an explicit value on the task always wins."""
    if task.min_block_minutes:
        return task.min_block_minutes

    important = task.importance is Level.HIGH
    difficult = task.difficulty is Level.HIGH
    urgent = urgency >= Urgency.HIGH

    if urgent and (important or difficult) and is_finishable(task.title):
        return DEEP_SITTING_BLOCK_MINUTES if important and difficult else SITTING_BLOCK_MINUTES
    if important or difficult or urgent:
        return FOCUSED_BLOCK_MINUTES
    return BASE_BLOCK_MINUTES


def _priority_key(item: ScheduledTask) -> tuple:
    weight = item.task.importance.rank + item.task.difficulty.rank
    return (not item.require_daily, -int(item.urgency), -weight, item.deadline_day)


def _appointment_interval(task: Task) -> BusyInterval:
    start = task.deadline_minute or 0
    end = min(MINUTES_PER_DAY, start + max(task.duration_minutes, 1))
    if end <= start:
        start = max(0, end - max(task.duration_minutes, 1))
    return BusyInterval(task.deadline_day, start, end, task.title, Origin.FIXED_EVENT)


def prioritize(
    tasks: Iterable[Task],
    *,
    anchor_day: int,
    days: Sequence[int],
    constraints: Optional[ConstraintSet] = None,
    config: Optional[EngineConfig] = None,
) -> PrioritizedTasks:
    """Split appointments from flexible work and rank the flexible tasks.

    Appointments become fixed-event busy intervals on their deadline day. Flexible
    tasks are returned with ``requireDaily`` tasks first, then by descending
    urgency and descending importance plus difficulty; ``rank`` records the order.
    """
    constraints = constraints or ConstraintSet()
    config = config or EngineConfig()
    horizon = set(days)

    ranked: List[ScheduledTask] = []
    appointments: List[BusyInterval] = []
    dropped: List[str] = []

    for task in tasks:
        if task.kind is TaskKind.FIXED_APPOINTMENT:
            if task.deadline_day < anchor_day:
                logger.warning("Dropping appointment %s scheduled before the anchor day", task.id)
                dropped.append(task.id)
                continue
            if task.deadline_day not in horizon:
                logger.debug("Appointment %s falls outside the horizon", task.id)
                continue
            appointments.append(_appointment_interval(task))
            continue

        if task.deadline_day < anchor_day:
            logger.warning(
                "Task %s has deadline day %s before anchor %s; clamping to the anchor",
                task.id,
                task.deadline_day,
                anchor_day,
            )
            task = replace(task, deadline_day=anchor_day)

        days_left = task.deadline_day - anchor_day
        urgency = urgency_for(days_left)
        preferred = task.preferred_minute
        if preferred is None:
            preferred = constraints.preferred_minute
        if preferred is None:
            preferred = config.default_preferred_minute

        ranked.append(
            ScheduledTask(
                task=task,
                urgency=urgency,
                days_until_deadline=days_left,
                min_block_minutes=derive_min_block(task, urgency),
                weekend_eligible=task.weekend_eligible and not constraints.forbids_weekends,
                require_daily=task.importance is Level.HIGH and task.difficulty is Level.HIGH,
                preferred_minute=preferred,
            )
        )

    # sorted() is stable, so equal keys keep input order
    ordered = sorted(ranked, key=_priority_key)
    ordered = [replace(item, rank=index) for index, item in enumerate(ordered)]
    logger.debug(
        "Prioritized %d tasks (%d require daily), %d appointments",
        len(ordered),
        sum(1 for item in ordered if item.require_daily),
        len(appointments),
    )
    return PrioritizedTasks(tasks=tuple(ordered), appointments=tuple(appointments), dropped=tuple(dropped))
