"""Operational endpoints for scheduler jobs."""
from __future__ import annotations

from time import perf_counter

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from shedai.api.schemas.jobs import JobRunRequest, JobRunResponse
from shedai.core.config import settings
from shedai.db.deps import get_db
from shedai.engine.errors import IncompleteScheduleError
from shedai.observability.metrics import log_metric
from shedai.observability.tracing import trace
from shedai.services.job_runner import run_schedule_for_all_users, run_schedule_for_user

router = APIRouter()


@router.get("/jobs", tags=["jobs"])
def get_jobs_config(request: Request) -> dict:
    request_id = getattr(request.state, "request_id", None)
    with trace("jobs.config", metadata={"request_id": request_id}, request_id=request_id):
        data = {
            "scheduler_enabled": settings.scheduler_enabled,
            "schedule": {
                "timezone": settings.scheduler_timezone,
                "nightly_time": f"{settings.nightly_job_hour:02d}:{settings.nightly_job_minute:02d}",
            },
            "notifications": {
                "enabled": settings.notifications_enabled,
                "provider": settings.notifications_provider,
            },
        }
    return {**data, "request_id": request_id or ""}


@router.post("/jobs/run-now", response_model=JobRunResponse, tags=["jobs"])
def run_job_now(
    request: Request,
    payload: JobRunRequest,
    db: Session = Depends(get_db),
) -> JobRunResponse:
    if not settings.debug:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Run-now only allowed in debug mode")

    request_id = getattr(request.state, "request_id", None)
    metadata = {"job": payload.job, "request_id": request_id}
    start = perf_counter()
    with trace("jobs.run_now", metadata=metadata, request_id=request_id):
        if payload.user_id:
            try:
                run_schedule_for_user(db, payload.user_id, request_id=request_id)
            except IncompleteScheduleError as exc:
                raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
            except ValueError:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
            response = JobRunResponse(
                job=payload.job,
                users_processed=1,
                schedules_written=1,
                request_id=request_id or "",
            )
        else:
            result = run_schedule_for_all_users(db)
            response = JobRunResponse(
                job=payload.job,
                users_processed=result.users_processed,
                schedules_written=result.schedules_written,
                failed_user_ids=result.failed_user_ids,
                request_id=request_id or "",
            )

    latency_ms = (perf_counter() - start) * 1000
    log_metric("jobs.run_now.success", 1, metadata={"job": payload.job})
    log_metric("jobs.run_now.latency_ms", latency_ms, metadata={"job": payload.job})
    return response
