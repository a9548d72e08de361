"""Tunables for a single scheduling run."""
from __future__ import annotations

from dataclasses import dataclass

from shedai.engine.dayindex import parse_clock


@dataclass(frozen=True)
class EngineConfig:
    day_start_minute: int = 0
    day_end_minute: int = 23 * 60
    min_window_minutes: int = 30
    default_preferred_minute: int = 19 * 60
    apply_now_floor: bool = True
    proposer_chunk_minutes: int = 120
    proposer_min_chunk_minutes: int = 60
    backfill_min_partial_minutes: int = 30
    backfill_span_days: int = 28

    def __post_init__(self) -> None:
        if not 0 <= self.day_start_minute < self.day_end_minute <= 24 * 60:
            raise ValueError("day start must precede day end")
        if self.min_window_minutes < 1:
            raise ValueError("minimum window must be positive")

    @classmethod
    def from_settings(cls, settings) -> "EngineConfig":
        return cls(
            day_start_minute=parse_clock(settings.day_start),
            day_end_minute=parse_clock(settings.day_end),
            min_window_minutes=settings.min_window_minutes,
            default_preferred_minute=parse_clock(settings.default_preferred_time),
            apply_now_floor=settings.apply_now_floor,
            proposer_chunk_minutes=settings.proposer_chunk_minutes,
            proposer_min_chunk_minutes=settings.proposer_min_chunk_minutes,
            backfill_min_partial_minutes=settings.backfill_min_partial_minutes,
            backfill_span_days=settings.backfill_span_days,
        )
