from __future__ import annotations

from shedai.engine.models import BusyInterval, FreeWindow
from shedai.engine.windows import (
    compute_free_windows,
    merge_spans,
    split_large_windows,
    subtract_span,
)


def _busy(day: int, start: int, end: int, title: str = "busy") -> BusyInterval:
    return BusyInterval(day, start, end, title)


def test_adjacent_busy_intervals_merge_into_one_block() -> None:
    busy = [_busy(1, 9 * 60, 10 * 60), _busy(1, 10 * 60, 11 * 60)]
    assert merge_spans([(b.start_minute, b.end_minute) for b in busy]) == [(540, 660)]

    windows = compute_free_windows(busy, [1], day_start=8 * 60, day_end=12 * 60, min_minutes=30)
    assert windows[1] == [FreeWindow(1, 480, 540), FreeWindow(1, 660, 720)]


def test_free_windows_are_idempotent() -> None:
    busy = [_busy(1, 0, 420), _busy(1, 1200, 1260), _busy(2, 600, 700)]
    first = compute_free_windows(busy, [1, 2])
    second = compute_free_windows(busy, [1, 2])
    assert first == second


def test_short_gaps_are_dropped_and_busy_is_clamped() -> None:
    busy = [_busy(1, 0, 600), _busy(1, 620, 1440)]
    windows = compute_free_windows(busy, [1, 2], day_start=0, day_end=1380, min_minutes=30)
    assert windows[1] == []
    assert windows[2] == [FreeWindow(2, 0, 1380)]


def test_now_floor_only_applies_to_anchor_day() -> None:
    windows = compute_free_windows([], [3, 4], now_minute=15 * 60)
    assert windows[3] == [FreeWindow(3, 900, 1380)]
    assert windows[4] == [FreeWindow(4, 0, 1380)]


def test_subtract_span_splits_in_the_middle() -> None:
    assert subtract_span([(0, 100)], 40, 60) == [(0, 40), (60, 100)]
    assert subtract_span([(0, 100)], 0, 100) == []
    assert subtract_span([(0, 100)], 100, 120) == [(0, 100)]


def test_split_large_windows_drops_short_tail() -> None:
    chunks = split_large_windows([FreeWindow(1, 0, 290), FreeWindow(2, 60, 150)])
    assert chunks == [FreeWindow(1, 0, 120), FreeWindow(1, 120, 240), FreeWindow(2, 60, 150)]
