"""Schemas for schedule generation and history."""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from shedai.api.schemas.inputs import PatternItem


class ScheduleGenerateRequest(BaseModel):
    user_id: UUID
    anchor_date: Optional[date] = None
    horizon_days: Optional[int] = Field(None, ge=1, le=28)
    patterns: Optional[List[PatternItem]] = None
    tasks: Optional[List[Dict[str, Any]]] = None
    constraint_text: Optional[str] = Field(None, max_length=2000)
    session_id: Optional[str] = Field(None, min_length=1, max_length=64)


class ActivityPayload(BaseModel):
    start: str
    end: str
    title: str
    kind: Literal["lifestyle", "task", "appointment"]
    task_id: Optional[str] = None
    partial: bool = False


class ScheduleDayPayload(BaseModel):
    day: int
    weekday: str
    date: Optional[str] = None
    activities: List[ActivityPayload]


class ShortfallPayload(BaseModel):
    task_id: str
    title: str
    required_minutes: int
    allocated_minutes: int


class AllocationReportPayload(BaseModel):
    proposer_status: Literal["ok", "degraded", "disabled"]
    candidates: int = 0
    accepted: int = 0
    repaired: int = 0
    backfilled: int = 0
    rejected: int = 0
    rejection_reasons: Dict[str, int] = Field(default_factory=dict)
    unplaced_task_ids: List[str] = Field(default_factory=list)
    shortfalls: List[ShortfallPayload] = Field(default_factory=list)
    dropped_inputs: List[str] = Field(default_factory=list)
    soft_guidance: List[str] = Field(default_factory=list)
    complete: bool = True


class ScheduleResponse(BaseModel):
    run_id: UUID
    user_id: UUID
    anchor_date: Optional[date] = None
    horizon_days: Optional[int] = None
    schedule: List[ScheduleDayPayload]
    report: AllocationReportPayload
    session_id: Optional[str] = None
    created_at: Optional[datetime] = None
    request_id: str


class ScheduleHistoryItem(BaseModel):
    run_id: UUID
    anchor_date: Optional[date] = None
    horizon_days: Optional[int] = None
    proposer_status: Optional[str] = None
    complete: bool
    created_at: datetime


class ScheduleHistoryResponse(BaseModel):
    user_id: UUID
    items: List[ScheduleHistoryItem]
    request_id: str
