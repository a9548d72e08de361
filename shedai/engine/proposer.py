"""Request/response contract with the external placement proposer.

The proposer is advisory only. Whatever it returns is parsed into ``Placement``
candidates which the validator then checks; an unusable answer is retried a
bounded number of times and finally degrades to an empty candidate list.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from shedai.engine.dayindex import MINUTES_PER_DAY, parse_clock, weekday_name
from shedai.engine.errors import ProposerError, ProposerResponseError, ProposerUnavailableError
from shedai.engine.models import FreeWindow, Placement, PlacementSource, ScheduledTask, SessionMessage

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_DEGRADED = "degraded"
STATUS_DISABLED = "disabled"

SYSTEM_PROMPT = """You are a scheduling assistant. Place the given tasks inside the provided free windows.

Rules (hard constraints, placements that break them are discarded):
1) Every placement must lie completely inside one of the free_windows on the same day.
2) Never place a task on a day after its deadlineDay.
3) Each placement must last at least the task's minBlockMinutes.
4) Do not place tasks with weekendEligible=false on weekend days (day % 7 == 6 or day % 7 == 0).
5) Placements must not overlap each other.
6) Tasks with requireDaily=true should appear on every eligible day up to their deadline.
7) Prefer times close to each task's preferAround value.

Reply with a single JSON object of the form
{"placements": [{"taskId": "t1", "day": 1, "start": "19:00", "end": "21:00"}], "unplaced": ["t2"]}
Times are 24-hour HH:MM strings. Return nothing else."""


class PlacementItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    task_id: str = Field(..., alias="taskId")
    day: int
    start: str
    end: str

    @field_validator("task_id", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> str:
        if value is None:
            raise ValueError("taskId is required")
        return str(value)

    @field_validator("start", "end")
    @classmethod
    def _clock(cls, value: str) -> str:
        parse_clock(value)
        return value


class ProposalResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    placements: List[PlacementItem] = Field(default_factory=list)
    unplaced: List[str] = Field(default_factory=list)

    @field_validator("unplaced", mode="before")
    @classmethod
    def _ids(cls, value: Any) -> List[str]:
        if value is None:
            return []
        return [str(item) for item in value]


@dataclass(frozen=True)
class ProposalRequest:
    anchor_day: int
    free_windows: Tuple[FreeWindow, ...]
    tasks: Tuple[ScheduledTask, ...]
    constraint_text: str = ""
    soft_guidance: Tuple[str, ...] = ()
    anchor_date: Optional[date] = None
    history: Tuple[SessionMessage, ...] = ()

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "anchorDay": self.anchor_day,
            "anchorWeekday": weekday_name(self.anchor_day),
            "freeWindows": [window.to_payload() for window in self.free_windows],
            "tasks": [task.to_payload() for task in self.tasks],
            "constraintText": self.constraint_text,
        }
        if self.anchor_date is not None:
            payload["anchorDate"] = self.anchor_date.isoformat()
        if self.soft_guidance:
            payload["softGuidance"] = list(self.soft_guidance)
        return payload


def build_messages(request: ProposalRequest, feedback: Optional[str] = None) -> List[Dict[str, str]]:
    """Chat messages for a completion call; prior session turns ride along as context."""
    messages: List[Dict[str, str]] = [{"role": "system", "content": SYSTEM_PROMPT}]
    for turn in request.history:
        role = turn.role if turn.role in ("user", "assistant") else "user"
        messages.append({"role": role, "content": turn.content})
    messages.append({"role": "user", "content": json.dumps(request.to_payload(), ensure_ascii=False)})
    if feedback:
        messages.append(
            {
                "role": "user",
                "content": f"Your previous reply could not be used ({feedback}). Reply again with only the JSON object.",
            }
        )
    return messages


class Proposer(Protocol):
    """Anything that can turn a request into raw response text.

    Implementations raise ``ProposerUnavailableError`` on transport failure.
    """

    enabled: bool

    def complete(self, request: ProposalRequest, *, feedback: Optional[str] = None) -> str:
        ...


class NullProposer:
    """Stand-in used when no completion service is configured."""

    enabled = False

    def complete(self, request: ProposalRequest, *, feedback: Optional[str] = None) -> str:
        return '{"placements": []}'


class StaticProposer:
    """Replays canned responses in order; handy for scripted runs and tests."""

    enabled = True

    def __init__(self, responses: Sequence[str | Mapping[str, Any]]) -> None:
        self._responses = list(responses)
        self.requests: List[ProposalRequest] = []

    def complete(self, request: ProposalRequest, *, feedback: Optional[str] = None) -> str:
        self.requests.append(request)
        if not self._responses:
            raise ProposerUnavailableError("no canned responses left")
        response = self._responses.pop(0)
        return response if isinstance(response, str) else json.dumps(response)


@dataclass(frozen=True)
class ProposerResult:
    placements: Tuple[Placement, ...] = ()
    unplaced: Tuple[str, ...] = ()
    status: str = STATUS_DISABLED
    attempts: int = 0
    discarded: int = 0
    error: Optional[str] = None


_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def parse_response(content: Optional[str]) -> ProposalResponse:
    """Parse raw proposer output into the response model or raise ``ProposerResponseError``."""
    text = (content or "").strip()
    if not text:
        raise ProposerResponseError("empty response")
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        match = _JSON_OBJECT_RE.search(text)
        if not match:
            raise ProposerResponseError("response is not JSON") from None
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as exc:
            raise ProposerResponseError(f"response is not JSON: {exc.msg}") from exc
    if isinstance(data, list):
        data = {"placements": data}
    if not isinstance(data, dict):
        raise ProposerResponseError("response must be a JSON object")
    try:
        return ProposalResponse.model_validate(data)
    except ValidationError as exc:
        raise ProposerResponseError(f"response has the wrong shape: {exc.error_count()} errors") from exc


def to_placements(response: ProposalResponse, known_ids: Sequence[str]) -> Tuple[List[Placement], int]:
    """Convert parsed items into placements; items naming unknown tasks or empty spans are discarded."""
    known = set(known_ids)
    placements: List[Placement] = []
    discarded = 0
    for item in response.placements:
        start, end = parse_clock(item.start), parse_clock(item.end)
        if item.task_id not in known or not 0 <= start < end <= MINUTES_PER_DAY:
            discarded += 1
            continue
        placements.append(Placement(item.task_id, item.day, start, end, PlacementSource.PROPOSER))
    return placements, discarded


def request_placements(
    proposer: Proposer,
    request: ProposalRequest,
    *,
    max_attempts: int = 2,
) -> ProposerResult:
    """Ask once, re-ask on structurally broken replies, degrade to no candidates on failure."""
    if not getattr(proposer, "enabled", True):
        return ProposerResult(status=STATUS_DISABLED)
    if not request.tasks:
        return ProposerResult(status=STATUS_OK)

    feedback: Optional[str] = None
    attempts = 0
    known_ids = [task.id for task in request.tasks]
    while attempts < max(1, max_attempts):
        attempts += 1
        try:
            content = proposer.complete(request, feedback=feedback)
            response = parse_response(content)
        except ProposerUnavailableError as exc:
            logger.warning("Proposer unavailable after %d attempt(s): %s", attempts, exc)
            return ProposerResult(status=STATUS_DEGRADED, attempts=attempts, error=str(exc))
        except ProposerResponseError as exc:
            logger.warning("Proposer reply unusable (attempt %d/%d): %s", attempts, max_attempts, exc)
            feedback = str(exc)
            continue
        except ProposerError as exc:
            logger.warning("Proposer failed: %s", exc)
            return ProposerResult(status=STATUS_DEGRADED, attempts=attempts, error=str(exc))

        placements, discarded = to_placements(response, known_ids)
        logger.info(
            "Proposer returned %d candidates (%d discarded, %d unplaced)",
            len(placements),
            discarded,
            len(response.unplaced),
        )
        return ProposerResult(
            placements=tuple(placements),
            unplaced=tuple(response.unplaced),
            status=STATUS_OK,
            attempts=attempts,
            discarded=discarded,
        )

    return ProposerResult(status=STATUS_DEGRADED, attempts=attempts, error=feedback)
