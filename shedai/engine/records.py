"""Normalise raw task records from the document store into engine tasks."""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Iterable, List, Mapping, Optional, Set, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from shedai.engine.dayindex import day_for_date, parse_clock
from shedai.engine.models import Level, Task, TaskKind

logger = logging.getLogger(__name__)

APPOINTMENT_KEYWORDS = (
    "meeting",
    "class",
    "lecture",
    "seminar",
    "interview",
    "appointment",
    "doctor",
    "dentist",
    "consultation",
    "회의",
    "미팅",
    "수업",
    "세미나",
    "발표",
    "진료",
    "인터뷰",
    "약속",
    "행사",
    "촬영",
    "면담",
    "상담",
    "강의",
    "시험",
)
APPOINTMENT_TYPES = {"appointment", "event", "fixedappointment", "fixed"}
DEFAULT_APPOINTMENT_TIME = "12:00"

_LEVEL_ALIASES = {
    "low": Level.LOW,
    "l": Level.LOW,
    "하": Level.LOW,
    "낮음": Level.LOW,
    "med": Level.MEDIUM,
    "medium": Level.MEDIUM,
    "mid": Level.MEDIUM,
    "m": Level.MEDIUM,
    "중": Level.MEDIUM,
    "보통": Level.MEDIUM,
    "high": Level.HIGH,
    "h": Level.HIGH,
    "상": Level.HIGH,
    "높음": Level.HIGH,
}


def coerce_level(value: Any) -> Level:
    if value is None or value == "":
        return Level.MEDIUM
    if isinstance(value, Level):
        return value
    key = str(value).strip().lower()
    if key not in _LEVEL_ALIASES:
        raise ValueError(f"unknown level {value!r}")
    return _LEVEL_ALIASES[key]


class TaskRecord(BaseModel):
    """Task document as stored per user; accepts snake_case and camelCase keys."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = None
    title: str = Field(..., min_length=1, max_length=200)
    deadline_day: Optional[int] = Field(default=None, alias="deadlineDay")
    deadline: Optional[str] = None
    deadline_time: Optional[str] = Field(default=None, alias="deadlineTime")
    importance: Level = Level.MEDIUM
    difficulty: Level = Level.MEDIUM
    min_block_minutes: Optional[int] = Field(default=None, ge=15, le=720, alias="minBlockMinutes")
    weekend_eligible: bool = Field(default=True, alias="weekendEligible")
    kind: Optional[str] = Field(default=None, alias="type")
    duration_minutes: int = Field(default=60, ge=5, le=720, alias="estimatedMinutes")
    prefer_around: Optional[str] = Field(default=None, alias="preferAround")

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Optional[str]:
        if value is None or value == "":
            return None
        return str(value)

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value

    @field_validator("importance", "difficulty", mode="before")
    @classmethod
    def _level(cls, value: Any) -> Level:
        return coerce_level(value)

    @field_validator("deadline_time", "prefer_around")
    @classmethod
    def _clock(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        minute = parse_clock(value)
        if minute >= 24 * 60:
            raise ValueError("time of day must be before 24:00")
        return value.strip()

    @field_validator("deadline")
    @classmethod
    def _iso_deadline(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        _split_iso(value)
        return value.strip()

    @model_validator(mode="after")
    def _needs_deadline(self) -> "TaskRecord":
        if self.deadline_day is None and self.deadline is None:
            raise ValueError("either deadline_day or deadline is required")
        return self

    @property
    def is_appointment(self) -> bool:
        if self.kind and self.kind.strip().lower() in APPOINTMENT_TYPES:
            return True
        if self.deadline_time:
            lowered = self.title.lower()
            return any(keyword in lowered for keyword in APPOINTMENT_KEYWORDS)
        return False


def _split_iso(value: str) -> Tuple[date, Optional[str]]:
    text = value.strip()
    if len(text) > 10:
        moment = datetime.fromisoformat(text.replace("Z", "+00:00"))
        clock = f"{moment.hour:02d}:{moment.minute:02d}"
        return moment.date(), None if clock == "00:00" else clock
    return date.fromisoformat(text), None


def to_task(record: TaskRecord, *, anchor_date: date, fallback_id: str) -> Task:
    deadline_time = record.deadline_time
    if record.deadline_day is not None:
        deadline_day = record.deadline_day
    else:
        deadline_date, clock = _split_iso(record.deadline or "")
        deadline_day = day_for_date(anchor_date, deadline_date)
        deadline_time = deadline_time or clock

    appointment = record.is_appointment
    if appointment and deadline_time is None:
        deadline_time = DEFAULT_APPOINTMENT_TIME

    return Task(
        id=record.id or fallback_id,
        title=record.title,
        deadline_day=deadline_day,
        importance=record.importance,
        difficulty=record.difficulty,
        min_block_minutes=record.min_block_minutes,
        weekend_eligible=record.weekend_eligible,
        kind=TaskKind.FIXED_APPOINTMENT if appointment else TaskKind.FLEXIBLE,
        deadline_minute=parse_clock(deadline_time) if deadline_time else None,
        duration_minutes=record.duration_minutes,
        preferred_minute=parse_clock(record.prefer_around) if record.prefer_around else None,
    )


def normalize_tasks(
    records: Iterable[Any],
    *,
    anchor_date: date,
) -> Tuple[List[Task], List[str]]:
    """Validate raw records; malformed ones are logged and returned as dropped descriptions.

    Duplicates (same title, deadline, importance and difficulty) collapse into the
    first occurrence.
    """
    dropped: List[str] = []
    validated: List[Tuple[int, Union[Task, TaskRecord]]] = []
    for index, raw in enumerate(records):
        if isinstance(raw, (Task, TaskRecord)):
            validated.append((index, raw))
            continue
        try:
            validated.append((index, TaskRecord.model_validate(_as_mapping(raw))))
        except (ValidationError, TypeError) as exc:
            logger.warning("Dropping malformed task record #%d: %s", index, _summarize(exc))
            dropped.append(f"task[{index}]")

    # generated ids never shadow an explicit id from a later record
    taken = {item.id for _, item in validated if item.id}
    tasks: List[Task] = []
    seen_keys = set()
    seen_ids = set()
    for index, item in validated:
        if isinstance(item, Task):
            task = item
        else:
            fallback_id = None
            if not item.id:
                fallback_id = _free_id(index + 1, taken)
                taken.add(fallback_id)
            try:
                task = to_task(item, anchor_date=anchor_date, fallback_id=fallback_id or "")
            except ValueError as exc:
                logger.warning("Dropping malformed task record #%d: %s", index, _summarize(exc))
                dropped.append(f"task[{index}]")
                continue

        key = (task.title.strip().lower(), task.deadline_day, task.importance, task.difficulty)
        if key in seen_keys:
            logger.info("Collapsing duplicate task %r", task.title)
            continue
        if task.id in seen_ids:
            logger.warning("Dropping task with duplicate id %s", task.id)
            dropped.append(f"task[{index}]")
            continue
        seen_keys.add(key)
        seen_ids.add(task.id)
        tasks.append(task)
    return tasks, dropped


def _free_id(number: int, taken: Set[str]) -> str:
    while f"t{number}" in taken:
        number += 1
    return f"t{number}"


def _as_mapping(raw: Any) -> Mapping[str, Any]:
    if isinstance(raw, Mapping):
        return raw
    raise TypeError(f"task record must be an object, got {type(raw).__name__}")


def _summarize(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        return "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())
    return str(exc)
