"""Batch job runner for nightly schedule regeneration."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from shedai.db.models.schedule_run import ScheduleRun
from shedai.engine.errors import ScheduleEngineError
from shedai.engine.proposer import Proposer
from shedai.services.notifications.hooks import notify_schedule_ready
from shedai.services.schedule_service import generate_for_user
from shedai.services.user_service import users_with_tasks


logger = logging.getLogger(__name__)


@dataclass
class JobRunResult:
    users_processed: int
    schedules_written: int
    failed_user_ids: List[UUID] = field(default_factory=list)


def run_schedule_for_user(
    db: Session,
    user_id: UUID,
    *,
    now: Optional[datetime] = None,
    proposer: Optional[Proposer] = None,
    request_id: str | None = None,
) -> ScheduleRun:
    """Regenerate one user's schedule from stored inputs and send the ready notification."""
    outcome = generate_for_user(db, user_id, now=now, proposer=proposer, request_id=request_id)
    notify_schedule_ready(db, outcome.run, request_id)
    return outcome.run


def run_schedule_for_all_users(
    db: Session,
    *,
    user_ids: Optional[Iterable[UUID]] = None,
    now: Optional[datetime] = None,
    proposer: Optional[Proposer] = None,
) -> JobRunResult:
    ids = _normalize_user_ids(user_ids, db)
    result = JobRunResult(users_processed=0, schedules_written=0)
    for uid in ids:
        try:
            run_schedule_for_user(db, uid, now=now, proposer=proposer)
        except (ScheduleEngineError, ValueError):
            db.rollback()
            logger.exception("Schedule job failed for user %s", uid)
            result.failed_user_ids.append(uid)
            continue
        result.users_processed += 1
        result.schedules_written += 1
    logger.info(
        "Schedule job processed %d users (%d written, %d failed)",
        result.users_processed,
        result.schedules_written,
        len(result.failed_user_ids),
    )
    return result


def _normalize_user_ids(user_ids: Optional[Iterable[UUID]], db: Session) -> List[UUID]:
    if user_ids is None:
        return users_with_tasks(db)
    return list(dict.fromkeys(user_ids))
