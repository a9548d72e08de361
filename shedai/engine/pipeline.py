"""End-to-end schedule generation: patterns, windows, proposer, repair, backfill, assembly."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

from shedai.engine.assembler import assemble_schedule
from shedai.engine.backfill import backfill
from shedai.engine.config import EngineConfig
from shedai.engine.constraints import ConstraintSet, parse_constraints
from shedai.engine.dayindex import anchor_day_for, horizon_days
from shedai.engine.models import (
    AllocationReport,
    BusyInterval,
    FreeWindow,
    Placement,
    PlacementSource,
    ScheduleDay,
    SessionState,
)
from shedai.engine.patterns import PatternDescriptor, compile_patterns
from shedai.engine.prioritizer import PrioritizedTasks, prioritize
from shedai.engine.proposer import NullProposer, ProposalRequest, Proposer, request_placements
from shedai.engine.records import normalize_tasks
from shedai.engine.validator import PlacementChecker, validate_and_repair
from shedai.engine.windows import compute_free_windows, flatten_windows, split_large_windows

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduleRequest:
    anchor_date: date
    horizon_days: int = 7
    patterns: Sequence[PatternDescriptor] = ()
    tasks: Sequence[Any] = ()
    constraint_text: str = ""
    now_minute: Optional[int] = None
    session: Optional[SessionState] = None
    feedback: Sequence[str] = ()


@dataclass(frozen=True)
class ScheduleResult:
    anchor_day: int
    days: Tuple[ScheduleDay, ...]
    report: AllocationReport
    session: Optional[SessionState]
    placements: Tuple[Placement, ...] = ()
    busy: Tuple[BusyInterval, ...] = ()
    windows: Dict[int, List[FreeWindow]] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "anchor_day": self.anchor_day,
            "schedule": [day.to_payload() for day in self.days],
            "report": self.report.to_dict(),
        }


def _hard_busy(
    patterns: Sequence[BusyInterval],
    prioritized: PrioritizedTasks,
    constraints: ConstraintSet,
    days: Sequence[int],
) -> Tuple[List[BusyInterval], List[BusyInterval]]:
    """Return (renderable busy intervals, busy intervals plus exclusion zones)."""
    visible = list(patterns) + list(prioritized.appointments)
    zones = constraints.exclusion_zones(visible, days)
    return visible, visible + zones


def _summary(result_days: Sequence[ScheduleDay], report: AllocationReport) -> str:
    placed = sum(1 for day in result_days for activity in day.activities if activity.task_id)
    text = f"Scheduled {placed} task blocks over {len(result_days)} days"
    if report.shortfalls:
        text += f"; short on {', '.join(item.title for item in report.shortfalls)}"
    return text


def generate_schedule(
    request: ScheduleRequest,
    *,
    proposer: Optional[Proposer] = None,
    config: Optional[EngineConfig] = None,
    max_proposer_attempts: int = 2,
) -> ScheduleResult:
    """Produce a conflict-free schedule for the request.

    Every stage is deterministic except the proposer, whose output is only ever
    treated as a suggestion. Raises ``IncompleteScheduleError`` if the assembled
    schedule does not cover the horizon; every other problem is reported in the
    returned ``AllocationReport``.
    """
    config = config or EngineConfig()
    proposer = proposer or NullProposer()
    report = AllocationReport()

    anchor_day = anchor_day_for(request.anchor_date)
    days = horizon_days(anchor_day, request.horizon_days)

    compiled = compile_patterns(request.patterns, days)
    report.dropped_inputs.extend(f"pattern: {text}" for text in compiled.unrecognized)

    tasks, dropped_tasks = normalize_tasks(request.tasks, anchor_date=request.anchor_date)
    report.dropped_inputs.extend(dropped_tasks)

    constraints = parse_constraints(request.constraint_text, history=request.feedback)
    report.soft_guidance.extend(constraints.soft_guidance)

    prioritized = prioritize(tasks, anchor_day=anchor_day, days=days, constraints=constraints, config=config)
    report.dropped_inputs.extend(f"appointment: {task_id}" for task_id in prioritized.dropped)

    visible_busy, hard_busy = _hard_busy(compiled.busy, prioritized, constraints, days)
    windows = compute_free_windows(
        hard_busy,
        days,
        day_start=config.day_start_minute,
        day_end=config.day_end_minute,
        min_minutes=config.min_window_minutes,
        now_minute=request.now_minute if config.apply_now_floor else None,
    )

    session = request.session
    proposal = ProposalRequest(
        anchor_day=anchor_day,
        anchor_date=request.anchor_date,
        free_windows=tuple(
            split_large_windows(
                flatten_windows(windows),
                chunk_minutes=config.proposer_chunk_minutes,
                min_chunk_minutes=config.proposer_min_chunk_minutes,
            )
        ),
        tasks=prioritized.tasks,
        constraint_text=constraints.text,
        soft_guidance=constraints.soft_guidance,
        history=session.messages if session else (),
    )
    proposed = request_placements(proposer, proposal, max_attempts=max_proposer_attempts)
    report.proposer_status = proposed.status
    report.candidates = len(proposed.placements) + proposed.discarded

    validation = validate_and_repair(
        proposed.placements,
        prioritized.tasks,
        windows,
        hard_busy,
        rest_minutes=constraints.rest_minutes,
    )
    report.accepted = validation.accepted
    report.repaired = validation.repaired
    report.rejected = validation.rejected + proposed.discarded
    report.rejection_reasons = dict(validation.reasons)
    if proposed.discarded:
        report.rejection_reasons["unknown_task"] = proposed.discarded

    filled = backfill(
        prioritized.tasks,
        validation.book,
        validation.capacity,
        PlacementChecker(windows, hard_busy),
        days=days,
        anchor_day=anchor_day,
        span_days=config.backfill_span_days,
        min_partial_minutes=config.backfill_min_partial_minutes,
        rest_minutes=constraints.rest_minutes,
    )
    report.backfilled = len(filled.added)
    report.shortfalls = list(filled.shortfalls)

    placements = tuple(validation.book.placements)
    placed_ids = {p.task_id for p in placements}
    report.unplaced_task_ids = [task.id for task in prioritized.tasks if task.id not in placed_ids]

    titles = {task.id: task.title for task in prioritized.tasks}
    result_days = assemble_schedule(days, visible_busy, placements, titles, anchor_date=request.anchor_date)

    if session is not None:
        session = session.append("user", request.constraint_text).append("assistant", _summary(result_days, report))

    logger.info(
        "Generated schedule: days=%d tasks=%d proposer=%s accepted=%d repaired=%d backfilled=%d shortfalls=%d",
        len(result_days),
        len(prioritized.tasks),
        report.proposer_status,
        report.accepted,
        report.repaired,
        report.backfilled,
        len(report.shortfalls),
    )
    return ScheduleResult(
        anchor_day=anchor_day,
        days=result_days,
        report=report,
        session=session,
        placements=placements,
        busy=tuple(visible_busy),
        windows=windows,
    )


def placements_by_source(placements: Sequence[Placement]) -> Dict[PlacementSource, int]:
    counts: Dict[PlacementSource, int] = {}
    for placement in placements:
        counts[placement.source] = counts.get(placement.source, 0) + 1
    return counts
