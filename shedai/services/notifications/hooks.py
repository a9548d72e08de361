"""Notification hook utilities."""
from __future__ import annotations

import logging
from time import perf_counter

from sqlalchemy.orm import Session

from shedai.core.config import settings
from shedai.db.models.schedule_run import ScheduleRun
from shedai.observability.metrics import log_metric
from shedai.observability.tracing import trace
from shedai.services.notifications.base import NotificationResult
from shedai.services.notifications.factory import get_notification_service


logger = logging.getLogger(__name__)

RUN_TYPE_NOTIFICATION = "notification_schedule_ready"


def notify_schedule_ready(db: Session, run: ScheduleRun, request_id: str | None) -> NotificationResult:
    """Tell the user a fresh schedule exists and record the attempt as a notification row."""
    report = run.report or {}
    shortfall_titles = [item.get("title") for item in report.get("shortfalls") or [] if item.get("title")]
    extra = {
        "anchor_date": run.anchor_date.isoformat() if run.anchor_date else None,
        "horizon_days": run.horizon_days,
        "proposer_status": run.proposer_status,
        "shortfalls": shortfall_titles,
    }

    if not settings.notifications_enabled:
        result = NotificationResult(status="skipped", reason="notifications disabled")
        _record_notification_log(db, run, result=result, request_id=request_id, extra=extra)
        return result

    service = get_notification_service()
    metadata = {
        "user_id": str(run.user_id),
        "run_id": str(run.id),
        "provider": settings.notifications_provider,
    }
    metadata.update({k: v for k, v in extra.items() if v not in (None, "", [], {})})
    start = perf_counter()
    with trace(
        "notifications.schedule_ready",
        metadata=metadata,
        user_id=str(run.user_id),
        request_id=request_id,
    ) as notification_trace:
        result = service.notify_schedule_ready(
            user_id=run.user_id,
            run_id=run.id,
            anchor_date=extra["anchor_date"] or "",
            horizon_days=run.horizon_days or 0,
            shortfall_titles=shortfall_titles,
            request_id=request_id,
        )
    if notification_trace:
        notification_trace.update(metadata={**metadata, "result": result.status})
    duration_ms = (perf_counter() - start) * 1000
    log_metric("notifications.sent", 1, metadata={"job": "schedule_ready", "provider": settings.notifications_provider})
    log_metric("notifications.duration_ms", duration_ms, metadata={"job": "schedule_ready"})
    _record_notification_log(db, run, result=result, request_id=request_id, extra=extra)
    return result


def _record_notification_log(
    db: Session,
    run: ScheduleRun,
    *,
    result: NotificationResult,
    request_id: str | None,
    extra: dict,
) -> None:
    if result.status == "skipped":
        log_metric("notifications.skipped", 1, metadata={"job": "schedule_ready"})
    payload = {
        "schedule_run_id": str(run.id),
        "provider": settings.notifications_provider,
        "result": result.__dict__,
        "extras": extra,
    }
    notification_log = ScheduleRun(
        user_id=run.user_id,
        run_type=RUN_TYPE_NOTIFICATION,
        anchor_date=run.anchor_date,
        horizon_days=run.horizon_days,
        schedule=[],
        report=payload,
        reason="Notification dispatched" if result.status != "skipped" else "Notification skipped",
        request_id=request_id or "",
    )
    db.add(notification_log)
    db.commit()
    logger.debug("Recorded %s notification for run %s", result.status, run.id)
