"""Value types shared by every engine stage."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Tuple

from shedai.engine.dayindex import MINUTES_PER_DAY, format_clock


class Level(str, Enum):
    LOW = "low"
    MEDIUM = "med"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return {"low": 0, "med": 1, "high": 2}[self.value]


class TaskKind(str, Enum):
    FLEXIBLE = "flexible"
    FIXED_APPOINTMENT = "fixedAppointment"


class Origin(str, Enum):
    PATTERN = "pattern"
    FIXED_EVENT = "fixedEvent"
    # Exclusion zones injected by steering text; never rendered as activities.
    CONSTRAINT = "constraint"


class Urgency(IntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4


class PlacementSource(str, Enum):
    PROPOSER = "proposer"
    REPAIR = "repair"
    BACKFILL = "backfill"


class ActivityKind(str, Enum):
    LIFESTYLE = "lifestyle"
    TASK = "task"
    APPOINTMENT = "appointment"


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Half-open interval overlap; touching intervals do not overlap."""
    return a_start < b_end and b_start < a_end


def _check_span(start: int, end: int) -> None:
    if not 0 <= start < end <= MINUTES_PER_DAY:
        raise ValueError(f"invalid interval {start}-{end}")


@dataclass(frozen=True)
class BusyInterval:
    day: int
    start_minute: int
    end_minute: int
    title: str
    origin: Origin = Origin.PATTERN

    def __post_init__(self) -> None:
        _check_span(self.start_minute, self.end_minute)


@dataclass(frozen=True)
class FreeWindow:
    day: int
    start_minute: int
    end_minute: int

    def __post_init__(self) -> None:
        _check_span(self.start_minute, self.end_minute)

    @property
    def duration(self) -> int:
        return self.end_minute - self.start_minute

    def contains(self, start: int, end: int) -> bool:
        return self.start_minute <= start and end <= self.end_minute

    def to_payload(self) -> Dict[str, Any]:
        return {"day": self.day, "start": format_clock(self.start_minute), "end": format_clock(self.end_minute)}


@dataclass(frozen=True)
class Task:
    id: str
    title: str
    deadline_day: int
    importance: Level = Level.MEDIUM
    difficulty: Level = Level.MEDIUM
    min_block_minutes: Optional[int] = None
    weekend_eligible: bool = True
    kind: TaskKind = TaskKind.FLEXIBLE
    deadline_minute: Optional[int] = None
    duration_minutes: int = 60
    preferred_minute: Optional[int] = None

    def __post_init__(self) -> None:
        if self.kind is TaskKind.FIXED_APPOINTMENT and self.deadline_minute is None:
            raise ValueError(f"fixed appointment {self.id!r} needs a deadline minute")


@dataclass(frozen=True)
class ScheduledTask:
    """A task enriched by the prioritizer; ``rank`` is its position in priority order."""

    task: Task
    urgency: Urgency
    days_until_deadline: int
    min_block_minutes: int
    weekend_eligible: bool
    require_daily: bool
    preferred_minute: int
    rank: int = 0

    @property
    def id(self) -> str:
        return self.task.id

    @property
    def title(self) -> str:
        return self.task.title

    @property
    def deadline_day(self) -> int:
        return self.task.deadline_day

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.task.id,
            "title": self.task.title,
            "deadlineDay": self.task.deadline_day,
            "priority": self.task.importance.value,
            "difficulty": self.task.difficulty.value,
            "minBlockMinutes": self.min_block_minutes,
            "urgency": self.urgency.name.lower(),
            "weekendEligible": self.weekend_eligible,
            "requireDaily": self.require_daily,
            "preferAround": format_clock(self.preferred_minute),
        }


@dataclass(frozen=True)
class Placement:
    task_id: str
    day: int
    start_minute: int
    end_minute: int
    source: PlacementSource = PlacementSource.PROPOSER
    partial: bool = False

    @property
    def duration(self) -> int:
        return self.end_minute - self.start_minute


@dataclass(frozen=True)
class Activity:
    start_minute: int
    end_minute: int
    title: str
    kind: ActivityKind
    task_id: Optional[str] = None
    partial: bool = False

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "start": format_clock(self.start_minute),
            "end": format_clock(self.end_minute),
            "title": self.title,
            "kind": self.kind.value,
        }
        if self.task_id is not None:
            payload["task_id"] = self.task_id
            payload["partial"] = self.partial
        return payload


@dataclass(frozen=True)
class ScheduleDay:
    day: int
    weekday: str
    date: Optional[str]
    activities: Tuple[Activity, ...]

    def to_payload(self) -> Dict[str, Any]:
        return {
            "day": self.day,
            "weekday": self.weekday,
            "date": self.date,
            "activities": [activity.to_payload() for activity in self.activities],
        }


@dataclass(frozen=True)
class Shortfall:
    task_id: str
    title: str
    required_minutes: int
    allocated_minutes: int

    @property
    def missing_minutes(self) -> int:
        return max(0, self.required_minutes - self.allocated_minutes)


@dataclass
class AllocationReport:
    proposer_status: str = "disabled"
    candidates: int = 0
    accepted: int = 0
    repaired: int = 0
    backfilled: int = 0
    rejected: int = 0
    rejection_reasons: Dict[str, int] = field(default_factory=dict)
    unplaced_task_ids: List[str] = field(default_factory=list)
    shortfalls: List[Shortfall] = field(default_factory=list)
    dropped_inputs: List[str] = field(default_factory=list)
    soft_guidance: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.shortfalls

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposer_status": self.proposer_status,
            "candidates": self.candidates,
            "accepted": self.accepted,
            "repaired": self.repaired,
            "backfilled": self.backfilled,
            "rejected": self.rejected,
            "rejection_reasons": dict(self.rejection_reasons),
            "unplaced_task_ids": list(self.unplaced_task_ids),
            "shortfalls": [
                {
                    "task_id": item.task_id,
                    "title": item.title,
                    "required_minutes": item.required_minutes,
                    "allocated_minutes": item.allocated_minutes,
                }
                for item in self.shortfalls
            ],
            "dropped_inputs": list(self.dropped_inputs),
            "soft_guidance": list(self.soft_guidance),
            "complete": self.complete,
        }


@dataclass(frozen=True)
class SessionMessage:
    role: str
    content: str


@dataclass(frozen=True)
class SessionState:
    """Conversation context owned by the caller and threaded through each request."""

    session_id: str
    messages: Tuple[SessionMessage, ...] = ()
    max_messages: int = 12

    def append(self, role: str, content: str) -> "SessionState":
        if not content or not content.strip():
            return self
        messages = self.messages + (SessionMessage(role=role, content=content.strip()),)
        return replace(self, messages=messages[-self.max_messages:])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "messages": [{"role": m.role, "content": m.content} for m in self.messages],
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any] | None, session_id: str) -> "SessionState":
        payload = payload or {}
        messages = tuple(
            SessionMessage(role=str(item.get("role") or "user"), content=str(item.get("content") or ""))
            for item in payload.get("messages") or []
            if isinstance(item, dict) and item.get("content")
        )
        return cls(session_id=session_id, messages=messages)
