"""Endpoints for storing a user's recurring patterns, tasks, constraint text and feedback."""
from __future__ import annotations

from typing import Any, Dict, List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from shedai.api.schemas.inputs import (
    ConstraintsPayload,
    ConstraintsResponse,
    FeedbackEntryResponse,
    FeedbackListResponse,
    FeedbackPayload,
    FeedbackResponse,
    PatternsPayload,
    PatternsResponse,
    TasksPayload,
    TasksResponse,
)
from shedai.db.deps import get_db
from shedai.engine.constraints import parse_constraints
from shedai.engine.feedback import FeedbackEntry
from shedai.engine.parsing import Unrecognized
from shedai.engine.patterns import parse_pattern
from shedai.engine.records import TaskRecord
from shedai.observability.metrics import log_metric
from shedai.observability.tracing import trace
from shedai.services.document_store import CONSTRAINTS, FEEDBACK, PATTERNS, TASKS, SqlDocumentStore
from shedai.services.feedback_service import record_feedback
from shedai.services.user_service import require_user

router = APIRouter()


def _unrecognized_patterns(patterns: List[Any]) -> List[str]:
    return [result.text for result in map(parse_pattern, patterns) if isinstance(result, Unrecognized)]


def _task_errors(tasks: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    errors: List[Dict[str, Any]] = []
    for index, record in enumerate(tasks):
        try:
            TaskRecord.model_validate(record)
        except ValidationError as exc:
            errors.append(
                {
                    "index": index,
                    "errors": [
                        {"loc": list(err["loc"]), "msg": err["msg"]} for err in exc.errors(include_url=False)
                    ],
                }
            )
    return errors


def _load(db: Session, user_id: UUID, collection: str) -> Any:
    try:
        require_user(db, user_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return SqlDocumentStore(db).get(user_id, collection)


@router.put("/users/{user_id}/patterns", response_model=PatternsResponse, tags=["inputs"])
def put_patterns(
    user_id: UUID,
    payload: PatternsPayload,
    request: Request,
    db: Session = Depends(get_db),
) -> PatternsResponse:
    request_id = getattr(request.state, "request_id", None)
    with trace("inputs.patterns.put", metadata={"count": len(payload.patterns)}, user_id=str(user_id), request_id=request_id):
        unrecognized = _unrecognized_patterns(payload.patterns)
        SqlDocumentStore(db).put(user_id, PATTERNS, payload.patterns)
    log_metric("inputs.patterns.unrecognized", len(unrecognized), metadata={"user_id": str(user_id)})
    return PatternsResponse(
        user_id=user_id,
        patterns=payload.patterns,
        unrecognized=unrecognized,
        request_id=request_id or "",
    )


@router.get("/users/{user_id}/patterns", response_model=PatternsResponse, tags=["inputs"])
def get_patterns(user_id: UUID, request: Request, db: Session = Depends(get_db)) -> PatternsResponse:
    request_id = getattr(request.state, "request_id", None)
    patterns = _load(db, user_id, PATTERNS) or []
    return PatternsResponse(
        user_id=user_id,
        patterns=patterns,
        unrecognized=_unrecognized_patterns(patterns),
        request_id=request_id or "",
    )


@router.put("/users/{user_id}/tasks", response_model=TasksResponse, tags=["inputs"])
def put_tasks(
    user_id: UUID,
    payload: TasksPayload,
    request: Request,
    db: Session = Depends(get_db),
) -> TasksResponse:
    request_id = getattr(request.state, "request_id", None)
    errors = _task_errors(payload.tasks)
    if errors:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail={"invalid_tasks": errors})
    with trace("inputs.tasks.put", metadata={"count": len(payload.tasks)}, user_id=str(user_id), request_id=request_id):
        SqlDocumentStore(db).put(user_id, TASKS, payload.tasks)
    log_metric("inputs.tasks.stored", len(payload.tasks), metadata={"user_id": str(user_id)})
    return TasksResponse(user_id=user_id, tasks=payload.tasks, request_id=request_id or "")


@router.get("/users/{user_id}/tasks", response_model=TasksResponse, tags=["inputs"])
def get_tasks(user_id: UUID, request: Request, db: Session = Depends(get_db)) -> TasksResponse:
    request_id = getattr(request.state, "request_id", None)
    tasks = _load(db, user_id, TASKS) or []
    return TasksResponse(user_id=user_id, tasks=tasks, request_id=request_id or "")


@router.put("/users/{user_id}/constraints", response_model=ConstraintsResponse, tags=["inputs"])
def put_constraints(
    user_id: UUID,
    payload: ConstraintsPayload,
    request: Request,
    db: Session = Depends(get_db),
) -> ConstraintsResponse:
    request_id = getattr(request.state, "request_id", None)
    parsed = parse_constraints(payload.text)
    SqlDocumentStore(db).put(user_id, CONSTRAINTS, {"text": payload.text})
    return ConstraintsResponse(
        user_id=user_id,
        text=payload.text,
        recognized=list(parsed.recognized),
        soft_guidance=list(parsed.soft_guidance),
        request_id=request_id or "",
    )


@router.get("/users/{user_id}/constraints", response_model=ConstraintsResponse, tags=["inputs"])
def get_constraints(user_id: UUID, request: Request, db: Session = Depends(get_db)) -> ConstraintsResponse:
    request_id = getattr(request.state, "request_id", None)
    text = (_load(db, user_id, CONSTRAINTS) or {}).get("text", "")
    parsed = parse_constraints(text)
    return ConstraintsResponse(
        user_id=user_id,
        text=text,
        recognized=list(parsed.recognized),
        soft_guidance=list(parsed.soft_guidance),
        request_id=request_id or "",
    )


def _entry_response(entry: FeedbackEntry) -> FeedbackEntryResponse:
    return FeedbackEntryResponse(
        text=entry.text,
        kind=entry.kind.value,
        recognized=list(entry.recognized),
        created_at=entry.created_at,
    )


@router.post("/users/{user_id}/feedback", response_model=FeedbackResponse, tags=["inputs"])
def post_feedback(
    user_id: UUID,
    payload: FeedbackPayload,
    request: Request,
    db: Session = Depends(get_db),
) -> FeedbackResponse:
    request_id = getattr(request.state, "request_id", None)
    with trace("inputs.feedback.post", metadata={"length": len(payload.text)}, user_id=str(user_id), request_id=request_id):
        try:
            entry = record_feedback(db, user_id, payload.text)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    return FeedbackResponse(user_id=user_id, entry=_entry_response(entry), request_id=request_id or "")


@router.get("/users/{user_id}/feedback", response_model=FeedbackListResponse, tags=["inputs"])
def get_feedback(user_id: UUID, request: Request, db: Session = Depends(get_db)) -> FeedbackListResponse:
    request_id = getattr(request.state, "request_id", None)
    entries = [FeedbackEntry.from_dict(item) for item in _load(db, user_id, FEEDBACK) or []]
    return FeedbackListResponse(
        user_id=user_id,
        items=[_entry_response(entry) for entry in entries],
        request_id=request_id or "",
    )
