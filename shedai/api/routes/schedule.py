"""Schedule generation and history endpoints."""
from __future__ import annotations

from time import perf_counter
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from shedai.api.schemas.schedule import (
    ScheduleGenerateRequest,
    ScheduleHistoryItem,
    ScheduleHistoryResponse,
    ScheduleResponse,
)
from shedai.db.deps import get_db
from shedai.db.models.schedule_run import ScheduleRun
from shedai.engine.errors import IncompleteScheduleError, InvalidHorizonError
from shedai.observability.metrics import log_metric
from shedai.observability.tracing import trace
from shedai.services.schedule_service import generate_for_user, list_runs, load_latest_run

router = APIRouter()


def _response_from_run(run: ScheduleRun, request_id: str | None, session_id: str | None = None) -> ScheduleResponse:
    return ScheduleResponse(
        run_id=run.id,
        user_id=run.user_id,
        anchor_date=run.anchor_date,
        horizon_days=run.horizon_days,
        schedule=run.schedule or [],
        report=run.report or {},
        session_id=session_id,
        created_at=run.created_at,
        request_id=request_id or "",
    )


@router.post("/schedule/generate", response_model=ScheduleResponse, tags=["schedule"])
def generate_schedule_route(
    request: Request,
    payload: ScheduleGenerateRequest,
    db: Session = Depends(get_db),
) -> ScheduleResponse:
    request_id = getattr(request.state, "request_id", None)
    metadata = {"user_id": str(payload.user_id), "request_id": request_id}
    start = perf_counter()
    with trace("schedule.generate.http", metadata=metadata, user_id=str(payload.user_id), request_id=request_id):
        try:
            outcome = generate_for_user(
                db,
                payload.user_id,
                anchor_date=payload.anchor_date,
                horizon_days=payload.horizon_days,
                patterns=payload.patterns,
                tasks=payload.tasks,
                constraint_text=payload.constraint_text,
                session_id=payload.session_id,
                request_id=request_id,
            )
        except IncompleteScheduleError as exc:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail={"error": "incomplete_schedule", "message": str(exc), "missing_days": exc.missing_days},
            )
        except InvalidHorizonError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail={"error": "invalid_horizon", "message": str(exc), "max_horizon_days": exc.maximum},
            )
        except ValueError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    latency_ms = (perf_counter() - start) * 1000
    log_metric("schedule.generate.success", 1, metadata={"user_id": str(payload.user_id)})
    log_metric("schedule.generate.http_latency_ms", latency_ms, metadata={"user_id": str(payload.user_id)})
    return _response_from_run(outcome.run, request_id, payload.session_id)


@router.get("/schedule/latest", response_model=ScheduleResponse, tags=["schedule"])
def schedule_latest(
    request: Request,
    user_id: UUID = Query(..., description="User ID"),
    db: Session = Depends(get_db),
) -> ScheduleResponse:
    request_id = getattr(request.state, "request_id", None)
    with trace("schedule.latest", metadata={"user_id": str(user_id)}, user_id=str(user_id), request_id=request_id):
        run = load_latest_run(db, user_id)
    if not run:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No schedule found")
    return _response_from_run(run, request_id)


@router.get("/schedule/history", response_model=ScheduleHistoryResponse, tags=["schedule"])
def schedule_history(
    request: Request,
    user_id: UUID = Query(..., description="User ID"),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
) -> ScheduleHistoryResponse:
    request_id = getattr(request.state, "request_id", None)
    runs = list_runs(db, user_id, limit=limit)
    items = [
        ScheduleHistoryItem(
            run_id=run.id,
            anchor_date=run.anchor_date,
            horizon_days=run.horizon_days,
            proposer_status=run.proposer_status,
            complete=bool((run.report or {}).get("complete", True)),
            created_at=run.created_at,
        )
        for run in runs
    ]
    return ScheduleHistoryResponse(user_id=user_id, items=items, request_id=request_id or "")
