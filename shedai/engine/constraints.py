"""Steering-text directives: weekend policy, preferred time, rest gaps and blackouts.

Constraint text is split into sentences and each sentence is scanned with an
ordered directive table. Sentences that match nothing are kept verbatim as soft
guidance for the proposer and never become hard rules.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from re import Match
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple, Union

from shedai.engine.dayindex import MINUTES_PER_DAY, parse_clock, weekday_of
from shedai.engine.models import BusyInterval, Origin
from shedai.engine.parsing import Parsed, Rule, first_match
from shedai.engine.patterns import ALL_WEEKDAYS, TIME_RANGE_RULES, WEEKEND, WORKDAYS

logger = logging.getLogger(__name__)

DEFAULT_EVENT_BUFFER_MINUTES = 60

TIME_OF_DAY = {
    "morning": 9 * 60,
    "afternoon": 14 * 60,
    "evening": 19 * 60,
    "night": 21 * 60,
}
_KO_TIME_OF_DAY = {"아침": "morning", "오전": "morning", "오후": "afternoon", "저녁": "evening", "밤": "night"}

MEALS = {
    "breakfast": (7 * 60, 8 * 60),
    "lunch": (12 * 60, 13 * 60),
    "dinner": (18 * 60, 19 * 60),
}
_KO_MEALS = {"아침": "breakfast", "점심": "lunch", "저녁": "dinner"}

# Busy-title keywords that stand in for a named event.
EVENT_SYNONYMS = {
    "work": ("work", "office", "job", "shift", "회사", "근무", "출근", "업무"),
    "office": ("work", "office", "job", "회사", "근무", "출근"),
    "office hours": ("work", "office", "job", "회사", "근무", "출근"),
    "퇴근": ("work", "office", "job", "회사", "근무", "출근", "업무"),
    "class": ("class", "lecture", "course", "수업", "강의"),
    "school": ("school", "class", "lecture", "학교", "수업"),
    "수업": ("class", "lecture", "수업", "강의"),
    "workout": ("workout", "gym", "exercise", "운동", "헬스"),
    "gym": ("workout", "gym", "exercise", "운동", "헬스"),
    "운동": ("workout", "gym", "exercise", "운동", "헬스"),
}


@dataclass(frozen=True)
class WeekendPolicy:
    allowed: bool


@dataclass(frozen=True)
class TimePreference:
    minute: int
    label: str


@dataclass(frozen=True)
class RestGap:
    minutes: int


@dataclass(frozen=True)
class EventBuffer:
    event: str
    minutes: int
    after: bool = True

    @property
    def keywords(self) -> Tuple[str, ...]:
        return EVENT_SYNONYMS.get(self.event.lower(), (self.event.lower(),))

    def matches(self, title: str) -> bool:
        lowered = title.lower()
        return any(keyword in lowered for keyword in self.keywords)


@dataclass(frozen=True)
class Blackout:
    title: str
    start_minute: int
    end_minute: int
    weekdays: FrozenSet[int] = ALL_WEEKDAYS


Directive = Union[WeekendPolicy, TimePreference, RestGap, EventBuffer, Blackout]


@dataclass(frozen=True)
class ConstraintSet:
    text: str = ""
    weekend_allowed: Optional[bool] = None
    preferred_minute: Optional[int] = None
    rest_minutes: int = 0
    event_buffers: Tuple[EventBuffer, ...] = ()
    blackouts: Tuple[Blackout, ...] = ()
    soft_guidance: Tuple[str, ...] = ()
    recognized: Tuple[str, ...] = ()

    @property
    def forbids_weekends(self) -> bool:
        return self.weekend_allowed is False

    def exclusion_zones(self, busy: Iterable[BusyInterval], days: Sequence[int]) -> List[BusyInterval]:
        """Expand blackouts and event buffers into constraint-origin busy intervals."""
        zones: List[BusyInterval] = []
        for blackout in self.blackouts:
            for day in days:
                if weekday_of(day) in blackout.weekdays:
                    zones.append(
                        BusyInterval(day, blackout.start_minute, blackout.end_minute, blackout.title, Origin.CONSTRAINT)
                    )
        if self.event_buffers:
            horizon = set(days)
            for interval in busy:
                if interval.origin is Origin.CONSTRAINT or interval.day not in horizon:
                    continue
                for buffer in self.event_buffers:
                    if not buffer.matches(interval.title):
                        continue
                    if buffer.after:
                        start, end = interval.end_minute, min(MINUTES_PER_DAY, interval.end_minute + buffer.minutes)
                    else:
                        start, end = max(0, interval.start_minute - buffer.minutes), interval.start_minute
                    if end > start:
                        label = f"{'after' if buffer.after else 'before'} {interval.title}"
                        zones.append(BusyInterval(interval.day, start, end, label, Origin.CONSTRAINT))
        return zones


# -- extractors ---------------------------------------------------------------

def parse_time_token(token: str) -> int:
    """Parse ``22:00``, ``10pm``, ``9:30am`` or a bare hour into minutes after midnight."""
    match = re.fullmatch(r"\s*(\d{1,2})(?::(\d{2}))?\s*(am|pm)?\s*", token, re.IGNORECASE)
    if not match:
        raise ValueError(f"invalid time {token!r}")
    hour, minute, meridiem = int(match.group(1)), int(match.group(2) or 0), match.group(3)
    if meridiem:
        if not 1 <= hour <= 12:
            raise ValueError(f"invalid time {token!r}")
        hour = hour % 12 + (12 if meridiem.lower() == "pm" else 0)
    return parse_clock(f"{hour}:{minute:02d}")


def _minutes(amount: str | None, unit: str | None, default: int) -> int:
    if not amount:
        return default
    value = int(amount)
    if unit and unit.lower().startswith(("h", "시")):
        value *= 60
    if value <= 0:
        raise ValueError("duration must be positive")
    return value


def _weekend(allowed: bool):
    return lambda _match: WeekendPolicy(allowed)


def _label_group(match: Match[str], *names: str) -> str:
    for name in names:
        value = match.groupdict().get(name)
        if value:
            return value
    raise ValueError("no label captured")


def _time_preference(match: Match[str]) -> TimePreference:
    label = _label_group(match, "label", "label2", "label3").lower()
    label = _KO_TIME_OF_DAY.get(label, label)
    label = label[:-1] if label.endswith("s") else label
    return TimePreference(TIME_OF_DAY[label], label)


def _clock_preference(match: Match[str]) -> TimePreference:
    minute = parse_time_token(match.group("time"))
    return TimePreference(minute, match.group("time").strip())


def _rest_gap(match: Match[str]) -> RestGap:
    amount = _label_group(match, "amount", "amount2")
    unit = match.groupdict().get("unit") or match.groupdict().get("unit2")
    return RestGap(_minutes(amount, unit, 0))


def _event_name(raw: str) -> str:
    event = re.sub(r"^(?:the|my|a|an)\s+", "", raw.strip().lower())
    for key in sorted(EVENT_SYNONYMS, key=len, reverse=True):
        if event.startswith(key):
            return key
    words = event.split()
    if not words or words[0][0].isdigit():
        raise ValueError("event buffer needs a named event")
    return words[0]


def _event_buffer(match: Match[str]) -> EventBuffer:
    after = match.group("direction").lower() in ("after", "끝나고", "후", "직후")
    minutes = _minutes(match.group("amount"), match.group("unit"), DEFAULT_EVENT_BUFFER_MINUTES)
    return EventBuffer(event=_event_name(match.group("event")), minutes=minutes, after=after)


def _within_event(match: Match[str]) -> EventBuffer:
    after = match.group("edge").lower().startswith("end")
    minutes = _minutes(match.group("amount"), match.group("unit"), DEFAULT_EVENT_BUFFER_MINUTES)
    return EventBuffer(event=_event_name(match.group("event")), minutes=minutes, after=after)


def _blackout_from(minute: int, after: bool, label: str, weekdays: FrozenSet[int] = ALL_WEEKDAYS) -> Blackout:
    if after:
        if minute >= MINUTES_PER_DAY:
            raise ValueError("cutoff at midnight blocks nothing")
        return Blackout(label, minute, MINUTES_PER_DAY, weekdays)
    if minute == 0:
        raise ValueError("cutoff at midnight blocks nothing")
    return Blackout(label, 0, minute, weekdays)


def _cutoff(after: bool):
    def extract(match: Match[str]) -> Blackout:
        token = match.group("time").strip()
        label = f"no work {'after' if after else 'before'} {token}"
        scope = (match.groupdict().get("scope") or "").lower()
        weekdays = ALL_WEEKDAYS
        if scope:
            weekdays = WEEKEND if scope.startswith("weekend") else WORKDAYS
            label = f"{label} on {scope}"
        return _blackout_from(parse_time_token(token), after, label, weekdays)

    return extract


def _korean_cutoff(match: Match[str]) -> Blackout:
    hour = int(match.group("hour"))
    if match.group("period") in ("오후", "저녁", "밤") and hour < 12:
        hour += 12
    after = match.group("direction").startswith(("이후", "넘", "후"))
    return _blackout_from(parse_clock(f"{hour}:00"), after, match.group(0).strip())


def _explicit_range(sentence: str) -> Optional[Tuple[int, int]]:
    found = first_match(sentence, TIME_RANGE_RULES)
    if isinstance(found, Parsed):
        start, end = found.value
        if start < end:
            return start, end
    return None


def _meal(match: Match[str]) -> Blackout:
    meal = _label_group(match, "meal", "meal2").lower()
    meal = _KO_MEALS.get(meal, meal)
    start, end = _explicit_range(match.string) or MEALS[meal]
    return Blackout(meal, start, end)


def _commute(match: Match[str]) -> Blackout:
    found = _explicit_range(match.string)
    if found is None:
        raise ValueError("commute needs a time range")
    return Blackout("commute", found[0], found[1], WORKDAYS)


_UNIT = r"min(?:ute)?s?|m|hours?|hrs?|h"
_DURATION = r"(?P<amount>\d+)\s*(?P<unit>" + _UNIT + r")"
_TIME = r"(?P<time>\d{1,2}(?::\d{2})?\s*(?:am|pm)?)"
_NEGATION = r"(?:no|don'?t|do\s+not|never|avoid|can'?t|cannot|won'?t)"
_WORK_VERB = r"(?:want\s+to\s+)?(?:work(?:ing)?|tasks?|stud(?:y|ying)|schedul\w*)"
_NO_WORK = _NEGATION + r"\s+" + _WORK_VERB
_DAY_SCOPE = r"(?:\s+(?:on|during|over)\s+(?:the\s+)?(?P<scope>weekends?|weekdays?))?"

DIRECTIVE_RULES: Sequence[Rule[Directive]] = (
    Rule(
        "weekend_deny",
        re.compile(
            r"\b(?:" + _NEGATION + r"|without)\s+(?:(?:" + _WORK_VERB + r"|do|plan\w*)(?:\s+(?:anything|things|stuff))?\s+)?"
            r"(?:(?:on|during|over|at|in)\s+)?(?:the\s+)?weekends?\b"
            r"|\bweekends?\s+(?:off|free|are\s+off|are\s+free|for\s+rest)\b"
            r"|\brest\s+(?:on|during|over|at)\s+(?:the\s+)?weekends?\b"
            r"|주말.{0,12}?(?:쉬|휴식|안|금지|빼)",
            re.IGNORECASE,
        ),
        _weekend(False),
    ),
    Rule(
        "weekend_allow",
        re.compile(
            r"\b(?:ok|okay|fine|happy|able|allowed|can(?!'t))\b[^.,;]*\bweekends?\b"
            r"|\bweekends?\b[^.,;]*\b(?:ok|okay|fine|allowed)\b"
            r"|\b(?:work|study)\s+(?:on\s+)?weekends?\b"
            r"|주말에?도",
            re.IGNORECASE,
        ),
        _weekend(True),
    ),
    Rule(
        "cutoff_after",
        re.compile(_NO_WORK + r"\s+(?:after|past)\s+" + _TIME + r"(?![\w:])" + _DAY_SCOPE, re.IGNORECASE),
        _cutoff(True),
    ),
    Rule(
        "cutoff_before",
        re.compile(_NO_WORK + r"\s+before\s+" + _TIME + r"(?![\w:])" + _DAY_SCOPE, re.IGNORECASE),
        _cutoff(False),
    ),
    Rule(
        "korean_cutoff",
        re.compile(r"(?:(?P<period>오전|오후|저녁|밤)\s*)?(?P<hour>\d{1,2})시\s*(?P<direction>이후|넘어서|후에?|이전|전에?)"),
        _korean_cutoff,
    ),
    Rule(
        "within_event",
        re.compile(
            r"within\s+" + _DURATION + r"\s+(?:of|after|before)\s+(?P<event>[a-z][a-z ]*?)\s+"
            r"(?P<edge>ending|ends|end|starting|starts|start)\b",
            re.IGNORECASE,
        ),
        _within_event,
    ),
    Rule(
        "event_buffer",
        re.compile(
            _NO_WORK + r"\s+(?:for\s+|within\s+)?(?:" + _DURATION + r"\s+)?"
            r"(?:right\s+|directly\s+|immediately\s+|just\s+)?(?P<direction>after|before)\s+(?P<event>[a-z][a-z ]*)",
            re.IGNORECASE,
        ),
        _event_buffer,
    ),
    Rule(
        "korean_event_buffer",
        re.compile(
            r"(?P<event>[가-힣]+?)\s*(?P<direction>끝나고|직후|후)(?:에는|에|는)?\s*"
            r"(?:(?P<amount>\d+)\s*(?P<unit>분|시간)\s*(?:동안|간)?\s*)?.{0,4}(?:일|작업|공부).{0,6}(?:안|말|싫|금지)"
        ),
        _event_buffer,
    ),
    Rule(
        "rest_gap",
        re.compile(
            r"(?:at\s+least\s+)?" + _DURATION + r"\s+(?:of\s+)?(?:rest|break|gap|buffer)s?\b"
            r"|\b(?:rest|break|gap|buffer)s?\s+(?:of\s+)?(?:at\s+least\s+)?(?P<amount2>\d+)\s*(?P<unit2>" + _UNIT + r")\b",
            re.IGNORECASE,
        ),
        _rest_gap,
    ),
    Rule(
        "korean_rest_gap",
        re.compile(r"(?P<amount>\d+)\s*(?P<unit>분|시간)\s*(?:이상\s*)?(?:쉬|휴식|텀|간격)"),
        _rest_gap,
    ),
    Rule(
        "meal",
        re.compile(
            r"\b(?P<meal>breakfast|lunch|dinner)\s*(?:break|time|hour)\b"
            r"|\b(?:keep|block|protect|reserve|free\s+up|no\s+work\s+(?:at|during))\s+(?:my\s+|the\s+)?"
            r"(?P<meal2>breakfast|lunch|dinner)\b",
            re.IGNORECASE,
        ),
        _meal,
    ),
    Rule("korean_meal", re.compile(r"(?P<meal>아침|점심|저녁)\s*(?:식사|밥|먹는\s*시간)"), _meal),
    Rule("commute", re.compile(r"\bcommut\w*|출퇴근|통근", re.IGNORECASE), _commute),
    Rule(
        "time_preference",
        re.compile(
            r"\b(?:prefer\w*|like|best|focus|rather|usually)\b[^.,;]*?\b(?:in\s+the\s+)?"
            r"(?P<label>mornings?|afternoons?|evenings?|nights?)\b"
            r"|\b(?P<label2>morning|evening|night)\s+person\b"
            r"|(?P<label3>아침|오전|오후|저녁|밤)에?\s*(?:하는\s*게|하고\s*싶|집중|선호|좋)",
            re.IGNORECASE,
        ),
        _time_preference,
    ),
    Rule(
        "clock_preference",
        re.compile(r"\b(?:prefer\w*|ideally|best)\b[^.,;]*?\b(?:around|at)\s+" + _TIME + r"(?![\w:])", re.IGNORECASE),
        _clock_preference,
    ),
)


def split_sentences(text: str) -> List[str]:
    parts = re.split(r"(?<=[.!?。])\s+|[\n;]+", text or "")
    return [part.strip() for part in parts if part and part.strip()]


def scan_sentence(sentence: str) -> List[Parsed[Directive]]:
    """Return every directive in the sentence; a span claimed by an earlier rule is not reused."""
    accepted: List[Parsed[Directive]] = []
    for rule in DIRECTIVE_RULES:
        for match in rule.matcher.finditer(sentence):
            span = match.span()
            if any(span[0] < other.span[1] and other.span[0] < span[1] for other in accepted):
                continue
            try:
                value = rule.extractor(match)
            except (KeyError, ValueError):
                continue
            accepted.append(Parsed(value=value, rule=rule.name, span=span))
    return accepted


def parse_constraints(text: str | None, *, history: Sequence[str] = ()) -> ConstraintSet:
    """Fold all recognised directives in ``text`` into a ConstraintSet.

    ``history`` holds earlier feedback; its sentences are read before ``text``
    so the current text decides preferences both of them set.
    """
    text = (text or "").strip()
    sentences = [sentence for earlier in history for sentence in split_sentences(earlier)]
    sentences.extend(split_sentences(text))
    if not sentences:
        return ConstraintSet(text=text)

    weekend_allowed: Optional[bool] = None
    preferred: Optional[int] = None
    rest = 0
    buffers: List[EventBuffer] = []
    blackouts: List[Blackout] = []
    soft: List[str] = []
    recognized: List[str] = []

    for sentence in sentences:
        directives = scan_sentence(sentence)
        if not directives:
            soft.append(sentence)
            continue
        for parsed in directives:
            recognized.append(parsed.rule)
            value = parsed.value
            if isinstance(value, WeekendPolicy):
                # a denial anywhere wins over an allowance
                weekend_allowed = value.allowed if weekend_allowed is None else weekend_allowed and value.allowed
            elif isinstance(value, TimePreference):
                preferred = value.minute
            elif isinstance(value, RestGap):
                rest = max(rest, value.minutes)
            elif isinstance(value, EventBuffer):
                buffers.append(value)
            elif isinstance(value, Blackout):
                blackouts.append(value)

    constraints = ConstraintSet(
        text=text,
        weekend_allowed=weekend_allowed,
        preferred_minute=preferred,
        rest_minutes=rest,
        event_buffers=tuple(buffers),
        blackouts=tuple(blackouts),
        soft_guidance=tuple(soft),
        recognized=tuple(recognized),
    )
    logger.debug("Parsed constraints: directives=%s soft=%d", recognized, len(soft))
    return constraints
