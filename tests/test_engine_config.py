from __future__ import annotations

import pytest

from shedai.core.config import Settings
from shedai.engine.config import EngineConfig


def test_from_settings_carries_every_tunable() -> None:
    config = EngineConfig.from_settings(
        Settings(
            day_start="06:00",
            day_end="22:00",
            proposer_chunk_minutes=90,
            proposer_min_chunk_minutes=45,
            backfill_min_partial_minutes=20,
            backfill_span_days=14,
        )
    )
    assert (config.day_start_minute, config.day_end_minute) == (360, 1320)
    assert config.proposer_chunk_minutes == 90
    assert config.proposer_min_chunk_minutes == 45
    assert config.backfill_min_partial_minutes == 20
    assert config.backfill_span_days == 14


def test_day_bounds_are_validated() -> None:
    with pytest.raises(ValueError):
        EngineConfig(day_start_minute=600, day_end_minute=540)
