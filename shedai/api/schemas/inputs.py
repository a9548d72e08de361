"""Schemas for stored schedule inputs."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Union
from uuid import UUID

from pydantic import BaseModel, Field


PatternItem = Union[str, Dict[str, Any]]


class PatternsPayload(BaseModel):
    patterns: List[PatternItem] = Field(default_factory=list, max_length=200)


class TasksPayload(BaseModel):
    tasks: List[Dict[str, Any]] = Field(default_factory=list, max_length=200)


class ConstraintsPayload(BaseModel):
    text: str = Field("", max_length=2000)


class PatternsResponse(BaseModel):
    user_id: UUID
    patterns: List[PatternItem]
    unrecognized: List[str] = Field(default_factory=list)
    request_id: str


class TasksResponse(BaseModel):
    user_id: UUID
    tasks: List[Dict[str, Any]]
    request_id: str


class ConstraintsResponse(BaseModel):
    user_id: UUID
    text: str
    recognized: List[str] = Field(default_factory=list)
    soft_guidance: List[str] = Field(default_factory=list)
    request_id: str


class FeedbackPayload(BaseModel):
    text: str = Field(..., min_length=1, max_length=2000)


class FeedbackEntryResponse(BaseModel):
    text: str
    kind: str
    recognized: List[str] = Field(default_factory=list)
    created_at: datetime


class FeedbackResponse(BaseModel):
    user_id: UUID
    entry: FeedbackEntryResponse
    request_id: str


class FeedbackListResponse(BaseModel):
    user_id: UUID
    items: List[FeedbackEntryResponse]
    request_id: str
