"""Schedule generation service: loads stored inputs, runs the engine, persists the run."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any, List, Optional, Sequence
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from shedai.core.config import settings
from shedai.db.models.schedule_run import ScheduleRun
from shedai.engine import EngineConfig, ScheduleRequest, ScheduleResult, SessionState, generate_schedule
from shedai.engine.errors import IncompleteScheduleError, InvalidHorizonError
from shedai.engine.pipeline import placements_by_source
from shedai.engine.proposer import Proposer
from shedai.observability.metrics import log_counts, log_metric, timed
from shedai.observability.tracing import trace
from shedai.services.document_store import CONSTRAINTS, PATTERNS, SESSIONS, TASKS, SqlDocumentStore
from shedai.services.feedback_service import recent_feedback_texts
from shedai.services.openai_proposer import get_proposer
from shedai.services.user_service import get_or_create_user, require_user

logger = logging.getLogger(__name__)

RUN_TYPE_SCHEDULE = "schedule"


@dataclass
class ScheduleRunResult:
    run: ScheduleRun
    result: ScheduleResult


def _local_now() -> datetime:
    return datetime.now(ZoneInfo(settings.scheduler_timezone))


def _load_session(store: SqlDocumentStore, user_id: UUID, session_id: str) -> SessionState:
    sessions = store.get(user_id, SESSIONS) or {}
    state = SessionState.from_dict(sessions.get(session_id), session_id)
    return replace(state, max_messages=settings.session_max_messages)


def _save_session(store: SqlDocumentStore, user_id: UUID, state: SessionState) -> None:
    sessions = store.get(user_id, SESSIONS) or {}
    sessions[state.session_id] = state.to_dict()
    store.put(user_id, SESSIONS, sessions)


def generate_for_user(
    db: Session,
    user_id: UUID,
    *,
    anchor_date: Optional[date] = None,
    horizon_days: Optional[int] = None,
    patterns: Optional[Sequence[Any]] = None,
    tasks: Optional[Sequence[Any]] = None,
    constraint_text: Optional[str] = None,
    session_id: Optional[str] = None,
    now: Optional[datetime] = None,
    proposer: Optional[Proposer] = None,
    request_id: Optional[str] = None,
    run_type: str = RUN_TYPE_SCHEDULE,
) -> ScheduleRunResult:
    """Generate and persist a schedule for one user.

    Inline ``patterns``/``tasks`` replace the stored documents for this run
    only; a provided ``constraint_text`` is stored for later runs. Stored
    feedback is replayed ahead of the constraint text. Raises
    ``InvalidHorizonError`` for a horizon outside the configured range,
    ``ValueError`` when the user is unknown and nothing was supplied inline,
    and lets ``IncompleteScheduleError`` propagate after recording a metric.
    """
    horizon = horizon_days or settings.default_horizon_days
    if horizon < 1 or horizon > settings.max_horizon_days:
        raise InvalidHorizonError(horizon, settings.max_horizon_days)

    if patterns is None and tasks is None:
        require_user(db, user_id)
    else:
        get_or_create_user(db, user_id)

    store = SqlDocumentStore(db, autocommit=False)
    patterns = list(patterns if patterns is not None else store.get(user_id, PATTERNS) or [])
    tasks = list(tasks if tasks is not None else store.get(user_id, TASKS) or [])
    if constraint_text is None:
        constraint_text = (store.get(user_id, CONSTRAINTS) or {}).get("text", "")
    else:
        store.put(user_id, CONSTRAINTS, {"text": constraint_text})

    now = now or _local_now()
    anchor_date = anchor_date or now.date()
    now_minute = now.hour * 60 + now.minute if anchor_date == now.date() else None
    session = _load_session(store, user_id, session_id) if session_id else None
    feedback = recent_feedback_texts(store, user_id)

    request = ScheduleRequest(
        anchor_date=anchor_date,
        horizon_days=horizon,
        patterns=patterns,
        tasks=tasks,
        constraint_text=constraint_text,
        now_minute=now_minute,
        session=session,
        feedback=feedback,
    )
    metadata = {
        "user_id": str(user_id),
        "anchor_date": anchor_date.isoformat(),
        "horizon_days": horizon,
        "tasks": len(tasks),
        "patterns": len(patterns),
        "feedback": len(feedback),
    }
    with trace("schedule.generate", metadata=metadata, user_id=str(user_id), request_id=request_id) as run_trace:
        try:
            with timed("schedule.generate", metadata={"user_id": str(user_id)}):
                result = generate_schedule(
                    request,
                    proposer=proposer or get_proposer(),
                    config=EngineConfig.from_settings(settings),
                    max_proposer_attempts=settings.proposer_max_attempts,
                )
        except IncompleteScheduleError:
            log_metric("schedule.generate.incomplete", 1, metadata={"user_id": str(user_id)})
            raise
        if run_trace:
            run_trace.update(metadata={**metadata, "report": result.report.to_dict()})

    report = result.report
    run = ScheduleRun(
        user_id=user_id,
        run_type=run_type,
        anchor_date=anchor_date,
        horizon_days=horizon,
        proposer_status=report.proposer_status,
        schedule=[day.to_payload() for day in result.days],
        report=report.to_dict(),
        reason="Schedule generated" if report.complete else "Schedule generated with shortfalls",
        request_id=request_id,
    )
    db.add(run)
    if result.session is not None:
        _save_session(store, user_id, result.session)
    db.commit()
    db.refresh(run)

    counts = {
        "accepted": report.accepted,
        "repaired": report.repaired,
        "backfilled": report.backfilled,
        "rejected": report.rejected,
        "shortfalls": len(report.shortfalls),
    }
    counts.update({f"placements.{source.value}": n for source, n in placements_by_source(result.placements).items()})
    log_counts("schedule", counts, metadata={"user_id": str(user_id), "proposer_status": report.proposer_status})
    logger.info("Stored schedule run %s for user %s (proposer=%s)", run.id, user_id, report.proposer_status)
    return ScheduleRunResult(run=run, result=result)


def load_latest_run(db: Session, user_id: UUID) -> ScheduleRun | None:
    """Fetch the latest stored schedule for a user."""
    return (
        db.query(ScheduleRun)
        .filter(ScheduleRun.user_id == user_id, ScheduleRun.run_type == RUN_TYPE_SCHEDULE)
        .order_by(ScheduleRun.created_at.desc())
        .first()
    )


def list_runs(db: Session, user_id: UUID, *, limit: int = 10) -> List[ScheduleRun]:
    return (
        db.query(ScheduleRun)
        .filter(ScheduleRun.user_id == user_id, ScheduleRun.run_type == RUN_TYPE_SCHEDULE)
        .order_by(ScheduleRun.created_at.desc())
        .limit(limit)
        .all()
    )
