"""Deterministic scheduling engine with an advisory placement proposer."""

from shedai.engine.config import EngineConfig
from shedai.engine.errors import IncompleteScheduleError, InvalidHorizonError, ScheduleEngineError
from shedai.engine.models import AllocationReport, ScheduleDay, SessionState
from shedai.engine.pipeline import ScheduleRequest, ScheduleResult, generate_schedule
from shedai.engine.proposer import NullProposer, StaticProposer

__all__ = [
    "AllocationReport",
    "EngineConfig",
    "IncompleteScheduleError",
    "InvalidHorizonError",
    "NullProposer",
    "ScheduleDay",
    "ScheduleEngineError",
    "ScheduleRequest",
    "ScheduleResult",
    "SessionState",
    "StaticProposer",
    "generate_schedule",
]
