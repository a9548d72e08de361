"""Free-window calculation over per-day busy intervals."""
from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from shedai.engine.models import FreeWindow

Span = Tuple[int, int]


class Occupied(Protocol):
    day: int
    start_minute: int
    end_minute: int


def clamp_spans(spans: Iterable[Span], lower: int, upper: int) -> List[Span]:
    """Clamp spans to ``[lower, upper]`` and drop the ones that collapse."""
    clamped: List[Span] = []
    for start, end in spans:
        start, end = max(start, lower), min(end, upper)
        if end > start:
            clamped.append((start, end))
    return clamped


def merge_spans(spans: Iterable[Span]) -> List[Span]:
    """Merge overlapping and touching spans into maximal blocks."""
    merged: List[Span] = []
    for start, end in sorted(spans):
        if merged and start <= merged[-1][1]:
            last_start, last_end = merged[-1]
            merged[-1] = (last_start, max(last_end, end))
        else:
            merged.append((start, end))
    return merged


def gaps_between(blocks: Sequence[Span], lower: int, upper: int, min_minutes: int) -> List[Span]:
    gaps: List[Span] = []
    cursor = lower
    for start, end in blocks:
        if start - cursor >= min_minutes:
            gaps.append((cursor, start))
        cursor = max(cursor, end)
    if upper - cursor >= min_minutes:
        gaps.append((cursor, upper))
    return gaps


def subtract_span(spans: Iterable[Span], start: int, end: int) -> List[Span]:
    """Remove ``[start, end)`` from each span, splitting spans consumed in the middle."""
    remaining: List[Span] = []
    for span_start, span_end in spans:
        if end <= span_start or span_end <= start:
            remaining.append((span_start, span_end))
            continue
        if span_start < start:
            remaining.append((span_start, start))
        if end < span_end:
            remaining.append((end, span_end))
    return remaining


def free_spans_for_day(
    busy: Iterable[Span],
    *,
    day_start: int,
    day_end: int,
    min_minutes: int,
) -> List[Span]:
    if day_end <= day_start:
        return []
    blocks = merge_spans(clamp_spans(busy, day_start, day_end))
    return gaps_between(blocks, day_start, day_end, min_minutes)


def compute_free_windows(
    busy: Iterable[Occupied],
    days: Sequence[int],
    *,
    day_start: int = 0,
    day_end: int = 23 * 60,
    min_minutes: int = 30,
    now_minute: Optional[int] = None,
) -> Dict[int, List[FreeWindow]]:
    """Return the free windows of every day in ``days``.

    ``busy`` may hold busy intervals and placements alike. When ``now_minute`` is
    given it raises the start of the first (anchor) day so nothing is offered in
    the past. Days without free time map to an empty list.
    """
    per_day: Dict[int, List[Span]] = defaultdict(list)
    for item in busy:
        per_day[item.day].append((item.start_minute, item.end_minute))

    anchor = days[0] if days else None
    windows: Dict[int, List[FreeWindow]] = {}
    for day in days:
        start = day_start
        if now_minute is not None and day == anchor:
            start = max(day_start, now_minute)
        spans = free_spans_for_day(per_day.get(day, ()), day_start=start, day_end=day_end, min_minutes=min_minutes)
        windows[day] = [FreeWindow(day, s, e) for s, e in spans]
    return windows


def flatten_windows(windows: Dict[int, List[FreeWindow]]) -> List[FreeWindow]:
    return [window for day in sorted(windows) for window in windows[day]]


def split_large_windows(
    windows: Iterable[FreeWindow],
    *,
    chunk_minutes: int = 120,
    min_chunk_minutes: int = 60,
) -> List[FreeWindow]:
    """Cut long windows into chunks; trailing chunks shorter than the minimum are dropped."""
    chunks: List[FreeWindow] = []
    for window in windows:
        if window.duration <= chunk_minutes:
            chunks.append(window)
            continue
        cursor = window.start_minute
        while cursor < window.end_minute:
            end = min(cursor + chunk_minutes, window.end_minute)
            if end - cursor >= min_chunk_minutes:
                chunks.append(FreeWindow(window.day, cursor, end))
            cursor = end
    return chunks
