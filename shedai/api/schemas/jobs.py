"""Schemas for job operations endpoints."""
from __future__ import annotations

from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class JobRunRequest(BaseModel):
    job: Literal["nightly_schedule"] = "nightly_schedule"
    user_id: Optional[UUID] = None


class JobRunResponse(BaseModel):
    job: str
    users_processed: int
    schedules_written: int
    failed_user_ids: List[UUID] = Field(default_factory=list)
    request_id: str
