"""Compile recurring lifestyle patterns into per-day busy intervals."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from re import Match
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Sequence, Tuple, Union

from shedai.engine.dayindex import MINUTES_PER_DAY, parse_clock, weekday_of
from shedai.engine.models import BusyInterval, Origin
from shedai.engine.parsing import Parsed, ParseResult, Rule, Unrecognized, all_matches, first_match

logger = logging.getLogger(__name__)

ALL_WEEKDAYS: FrozenSet[int] = frozenset(range(1, 8))
WORKDAYS: FrozenSet[int] = frozenset(range(1, 6))
WEEKEND: FrozenSet[int] = frozenset({6, 7})
DEFAULT_TITLE = "Activity"

_SEPARATOR = r"\s*(?:-|–|—|~|to)\s*"


@dataclass(frozen=True)
class PatternSpec:
    title: str
    start_minute: int
    end_minute: int
    weekdays: FrozenSet[int] = ALL_WEEKDAYS

    def __post_init__(self) -> None:
        if self.end_minute == 0 and self.start_minute > 0:
            object.__setattr__(self, "end_minute", MINUTES_PER_DAY)
        if not 0 <= self.start_minute < MINUTES_PER_DAY or not 0 < self.end_minute <= MINUTES_PER_DAY:
            raise ValueError(f"pattern {self.title!r} has an out-of-range time")
        if self.start_minute == self.end_minute:
            raise ValueError(f"pattern {self.title!r} has zero length")
        if not self.weekdays or not self.weekdays <= ALL_WEEKDAYS:
            raise ValueError(f"pattern {self.title!r} has invalid weekdays")

    @property
    def overnight(self) -> bool:
        return self.end_minute < self.start_minute


@dataclass(frozen=True)
class PatternCompilation:
    busy: Tuple[BusyInterval, ...]
    specs: Tuple[PatternSpec, ...]
    unrecognized: Tuple[str, ...]


# -- time ranges ------------------------------------------------------------

def _hhmm_range(match: Match[str]) -> Tuple[int, int]:
    start = parse_clock(f"{match.group(1)}:{match.group(2)}")
    end = parse_clock(f"{match.group(3)}:{match.group(4)}")
    return start, end


def _to_24h(hour: int, meridiem: str) -> int:
    if not 1 <= hour <= 12:
        raise ValueError(f"{hour} is not a 12-hour clock value")
    hour = hour % 12
    return hour + 12 if meridiem == "pm" else hour


def _meridiem_range(match: Match[str]) -> Tuple[int, int]:
    start_hour, start_min, start_mer = int(match.group(1)), int(match.group(2) or 0), match.group(3)
    end_hour, end_min, end_mer = int(match.group(4)), int(match.group(5) or 0), match.group(6).lower()
    end = _to_24h(end_hour, end_mer) * 60 + end_min
    if start_mer:
        start = _to_24h(start_hour, start_mer.lower()) * 60 + start_min
    else:
        # "9-11pm" shares the meridiem, "11-1pm" crosses noon.
        start = _to_24h(start_hour, end_mer) * 60 + start_min
        if start > end and end_mer == "pm":
            start -= 12 * 60
    if start >= MINUTES_PER_DAY or end > MINUTES_PER_DAY:
        raise ValueError("meridiem range out of bounds")
    return start, end


_KO_PERIOD_OFFSET = {"오전": 0, "새벽": 0, "아침": 0, "오후": 12, "저녁": 12, "밤": 12}


def _ko_hour(period: str | None, hour: int) -> int:
    if hour > 24:
        raise ValueError(f"{hour} is not an hour")
    if period is None:
        return hour
    if period == "오전" and hour == 12:
        return 0
    if hour < 12:
        return hour + _KO_PERIOD_OFFSET[period]
    return hour


def _korean_range(match: Match[str]) -> Tuple[int, int]:
    start_period, start_hour, start_min = match.group(1), int(match.group(2)), int(match.group(3) or 0)
    end_period, end_hour, end_min = match.group(4), int(match.group(5)), int(match.group(6) or 0)
    if end_period is None and start_period is not None and end_hour > start_hour:
        end_period = start_period
    start = _ko_hour(start_period, start_hour) * 60 + start_min
    end = _ko_hour(end_period, end_hour) * 60 + end_min
    if start >= MINUTES_PER_DAY or end > MINUTES_PER_DAY:
        raise ValueError("korean range out of bounds")
    return start, end


_KO_PERIOD = r"(오전|오후|새벽|아침|저녁|밤)?\s*"

TIME_RANGE_RULES: Sequence[Rule[Tuple[int, int]]] = (
    Rule(
        "meridiem",
        re.compile(
            r"\b(\d{1,2})(?::(\d{2}))?\s*(am|pm)?" + _SEPARATOR + r"(\d{1,2})(?::(\d{2}))?\s*(am|pm)\b",
            re.IGNORECASE,
        ),
        _meridiem_range,
    ),
    Rule(
        "clock",
        re.compile(r"(\d{1,2}):(\d{2})" + _SEPARATOR + r"(\d{1,2}):(\d{2})"),
        _hhmm_range,
    ),
    Rule(
        "korean",
        re.compile(
            _KO_PERIOD + r"(\d{1,2})시(?:\s*(\d{1,2})분)?\s*(?:-|~|부터)\s*"
            + _KO_PERIOD + r"(\d{1,2})시(?:\s*(\d{1,2})분)?(?:\s*까지)?"
        ),
        _korean_range,
    ),
)


# -- day scope --------------------------------------------------------------

_DAY_NAMES: Dict[int, str] = {
    1: r"mon(?:day)?s?",
    2: r"tue(?:s|sday)?s?",
    3: r"wed(?:nesday)?s?",
    4: r"thu(?:r|rs|rsday)?s?",
    5: r"fri(?:day)?s?",
    6: r"sat(?:urday)?s?",
    7: r"sun(?:day)?s?",
}
_KO_DAY_NAMES = {"월": 1, "화": 2, "수": 3, "목": 4, "금": 5, "토": 6, "일": 7}
_ANY_DAY_NAME = "|".join(_DAY_NAMES.values())


def _day_number(token: str) -> int:
    lowered = token.lower()
    for number, pattern in _DAY_NAMES.items():
        if re.fullmatch(pattern, lowered):
            return number
    raise ValueError(f"unknown day name {token!r}")


def _day_range(match: Match[str]) -> FrozenSet[int]:
    first, last = _day_number(match.group(1)), _day_number(match.group(2))
    if last < first:
        last += 7
    return frozenset(((day - 1) % 7) + 1 for day in range(first, last + 1))


def _day_names(match: Match[str]) -> FrozenSet[int]:
    tokens = re.findall(_ANY_DAY_NAME, match.group(0), re.IGNORECASE)
    return frozenset(_day_number(token) for token in tokens)


def _korean_day_names(match: Match[str]) -> FrozenSet[int]:
    return frozenset(_KO_DAY_NAMES[char] for char in re.findall(r"([월화수목금토일])요일", match.group(0)))


def _fixed(days: FrozenSet[int]):
    return lambda _match: days


DAY_SCOPE_RULES: Sequence[Rule[FrozenSet[int]]] = (
    Rule("daily", re.compile(r"\b(?:daily|every\s*day|everyday)\b|매일", re.IGNORECASE), _fixed(ALL_WEEKDAYS)),
    Rule("weekdays", re.compile(r"\bweekdays?\b|평일", re.IGNORECASE), _fixed(WORKDAYS)),
    Rule("weekend", re.compile(r"\bweekends?\b|주말", re.IGNORECASE), _fixed(WEEKEND)),
    Rule(
        "day_range",
        re.compile(rf"\b({_ANY_DAY_NAME})\b{_SEPARATOR}\b({_ANY_DAY_NAME})\b", re.IGNORECASE),
        _day_range,
    ),
    Rule(
        "day_names",
        re.compile(rf"\b(?:{_ANY_DAY_NAME})\b(?:\s*(?:,|/|and|&)?\s*\b(?:{_ANY_DAY_NAME})\b)*", re.IGNORECASE),
        _day_names,
    ),
    Rule("korean_days", re.compile(r"[월화수목금토일]요일(?:\s*[,/·]?\s*[월화수목금토일]요일)*"), _korean_day_names),
)


def _strip_spans(text: str, spans: Iterable[Tuple[int, int]]) -> str:
    pieces: List[str] = []
    cursor = 0
    for start, end in sorted(spans):
        if start < cursor:
            start = cursor
        pieces.append(text[cursor:start])
        pieces.append(" ")
        cursor = max(cursor, end)
    pieces.append(text[cursor:])
    return "".join(pieces)


def _residual_title(text: str, spans: Iterable[Tuple[int, int]]) -> str:
    residue = _strip_spans(text, spans)
    residue = re.sub(r"\s+", " ", residue)
    residue = residue.strip(" \t:;,|-–—~()[]")
    residue = re.sub(r"^(?:on|every|at)\s+", "", residue, flags=re.IGNORECASE)
    return residue.strip() or DEFAULT_TITLE


def parse_pattern_text(text: str) -> ParseResult:
    """Parse one free-text lifestyle line such as ``"weekdays 09:00-18:00 office"``."""
    cleaned = (text or "").strip()
    if not cleaned:
        return Unrecognized(text=text or "", reason="empty pattern")

    time_range = first_match(cleaned, TIME_RANGE_RULES)
    if isinstance(time_range, Unrecognized):
        return Unrecognized(text=cleaned, reason="no time range")
    start, end = time_range.value

    spans = [time_range.span]
    weekdays: FrozenSet[int] = frozenset()
    for scope in all_matches(cleaned, DAY_SCOPE_RULES):
        if _overlaps_any(scope.span, spans):
            continue
        weekdays = weekdays | scope.value
        spans.append(scope.span)
    if not weekdays:
        weekdays = ALL_WEEKDAYS

    title = _residual_title(cleaned, spans)
    try:
        spec = PatternSpec(title=title, start_minute=start, end_minute=end, weekdays=weekdays)
    except ValueError as exc:
        return Unrecognized(text=cleaned, reason=str(exc))
    return Parsed(value=spec, rule=time_range.rule, span=(0, len(cleaned)))


def _overlaps_any(span: Tuple[int, int], spans: Iterable[Tuple[int, int]]) -> bool:
    return any(span[0] < other[1] and other[0] < span[1] for other in spans)


def _weekdays_from_value(raw: Any) -> FrozenSet[int]:
    if raw is None or raw == [] or raw == "":
        return ALL_WEEKDAYS
    if isinstance(raw, str):
        found = all_matches(raw, DAY_SCOPE_RULES)
        if not found:
            raise ValueError(f"unknown day scope {raw!r}")
        return frozenset().union(*(item.value for item in found))
    days = set()
    for item in raw:
        if isinstance(item, bool):
            raise ValueError("weekday flags are not day numbers")
        if isinstance(item, int):
            days.add(((item - 1) % 7) + 1)
        else:
            days.add(_day_number(str(item)))
    return frozenset(days)


def parse_pattern_mapping(payload: Mapping[str, Any]) -> ParseResult:
    """Resolve a structured descriptor ``{title, start, end, days}``."""
    try:
        title = str(payload.get("title") or DEFAULT_TITLE).strip() or DEFAULT_TITLE
        start = parse_clock(str(payload["start"]))
        end = parse_clock(str(payload["end"]))
        weekdays = _weekdays_from_value(payload.get("days", payload.get("weekdays")))
        spec = PatternSpec(title=title, start_minute=start, end_minute=end, weekdays=weekdays)
    except (KeyError, TypeError, ValueError) as exc:
        return Unrecognized(text=repr(dict(payload)), reason=str(exc))
    return Parsed(value=spec, rule="structured")


PatternDescriptor = Union[str, Mapping[str, Any], PatternSpec]


def parse_pattern(descriptor: PatternDescriptor) -> ParseResult:
    if isinstance(descriptor, PatternSpec):
        return Parsed(value=descriptor, rule="spec")
    if isinstance(descriptor, str):
        return parse_pattern_text(descriptor)
    if isinstance(descriptor, Mapping):
        text = descriptor.get("text")
        if isinstance(text, str) and "start" not in descriptor:
            return parse_pattern_text(text)
        return parse_pattern_mapping(descriptor)
    return Unrecognized(text=repr(descriptor), reason="unsupported descriptor type")


def expand_spec(spec: PatternSpec, days: Sequence[int]) -> List[BusyInterval]:
    """Emit one interval per applicable horizon day; overnight specs are split at midnight.

    The evening part lands on the day the pattern applies to and the morning part on
    the following day, so the first horizon day also receives the tail of the
    previous evening.
    """
    if not days:
        return []
    horizon = set(days)
    intervals: List[BusyInterval] = []
    if not spec.overnight:
        for day in days:
            if weekday_of(day) in spec.weekdays:
                intervals.append(BusyInterval(day, spec.start_minute, spec.end_minute, spec.title, Origin.PATTERN))
        return intervals

    for day in range(min(days) - 1, max(days) + 1):
        if weekday_of(day) not in spec.weekdays:
            continue
        if day in horizon:
            intervals.append(BusyInterval(day, spec.start_minute, MINUTES_PER_DAY, spec.title, Origin.PATTERN))
        if day + 1 in horizon and spec.end_minute > 0:
            intervals.append(BusyInterval(day + 1, 0, spec.end_minute, spec.title, Origin.PATTERN))
    return intervals


def compile_patterns(descriptors: Iterable[PatternDescriptor], days: Sequence[int]) -> PatternCompilation:
    """Parse every descriptor and expand it across ``days``; unparsable entries are dropped."""
    busy: List[BusyInterval] = []
    specs: List[PatternSpec] = []
    dropped: List[str] = []
    for descriptor in descriptors:
        result = parse_pattern(descriptor)
        if isinstance(result, Unrecognized):
            logger.warning("Dropping unparsable pattern %r: %s", result.text, result.reason)
            dropped.append(result.text)
            continue
        specs.append(result.value)
        busy.extend(expand_spec(result.value, days))
    busy.sort(key=lambda item: (item.day, item.start_minute, item.end_minute))
    logger.debug("Compiled %d patterns into %d busy intervals", len(specs), len(busy))
    return PatternCompilation(busy=tuple(busy), specs=tuple(specs), unrecognized=tuple(dropped))
