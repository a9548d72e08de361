"""Exceptions raised by the scheduling engine."""
from __future__ import annotations

from typing import List


class ScheduleEngineError(Exception):
    """Base class for engine failures."""


class IncompleteScheduleError(ScheduleEngineError):
    """The assembled schedule does not cover the requested horizon."""

    def __init__(self, message: str, *, missing_days: List[int] | None = None) -> None:
        super().__init__(message)
        self.missing_days = list(missing_days or [])


class ProposerError(ScheduleEngineError):
    """Base class for proposer failures. Never leaves the adapter."""


class ProposerUnavailableError(ProposerError):
    """Transport failure or timeout after the client's retry budget."""


class ProposerResponseError(ProposerError):
    """The proposer answered with content that does not fit the placement shape."""


class InvalidHorizonError(ScheduleEngineError, ValueError):
    """The requested horizon is empty or longer than the engine supports."""

    def __init__(self, requested: int, maximum: int) -> None:
        super().__init__(f"horizon must cover 1..{maximum} days, got {requested}")
        self.requested = requested
        self.maximum = maximum
