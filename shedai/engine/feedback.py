"""User feedback on generated schedules.

Each entry keeps its text, a coarse sentiment class and the directives it
contributed. Stored entries are replayed ahead of the current constraint text
on later runs, so an explicit constraint still has the last word.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from shedai.engine.constraints import parse_constraints


class FeedbackKind(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    SUGGESTION = "suggestion"
    COMPLAINT = "complaint"
    NEUTRAL = "neutral"


# first match wins
_KIND_RULES: Tuple[Tuple[FeedbackKind, re.Pattern[str]], ...] = (
    (
        FeedbackKind.POSITIVE,
        re.compile(r"\b(?:good|great|perfect|love[sd]?|helpful|works?\s+well|thanks?)\b|좋|만족|적절|괜찮", re.IGNORECASE),
    ),
    (
        FeedbackKind.NEGATIVE,
        re.compile(r"\b(?:bad|too\s+(?:much|many|busy|packed|tight)|exhausting|tired|overwhelm\w*|hard)\b|나쁘|불만|힘들|빡빡|어려", re.IGNORECASE),
    ),
    (
        FeedbackKind.SUGGESTION,
        re.compile(r"\b(?:prefer\w*|would\s+like|i'?d\s+like|please|want|rather|suggest\w*)\b|제안|추천|원하|희망|싶", re.IGNORECASE),
    ),
    (
        FeedbackKind.COMPLAINT,
        re.compile(r"\b(?:wrong|annoying|hate|fix|stop|complain\w*)\b|개선|수정|지적", re.IGNORECASE),
    ),
)


def classify_feedback(text: str) -> FeedbackKind:
    for kind, pattern in _KIND_RULES:
        if pattern.search(text or ""):
            return kind
    return FeedbackKind.NEUTRAL


@dataclass(frozen=True)
class FeedbackEntry:
    text: str
    kind: FeedbackKind
    recognized: Tuple[str, ...] = ()
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "kind": self.kind.value,
            "recognized": list(self.recognized),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FeedbackEntry":
        return cls(
            text=str(data.get("text", "")),
            kind=FeedbackKind(data.get("kind", FeedbackKind.NEUTRAL.value)),
            recognized=tuple(data.get("recognized") or ()),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


def analyze_feedback(text: str, *, created_at: datetime | None = None) -> FeedbackEntry:
    """Classify ``text`` and record which directives it carries."""
    text = text.strip()
    if not text:
        raise ValueError("feedback text must not be blank")
    parsed = parse_constraints(text)
    return FeedbackEntry(
        text=text,
        kind=classify_feedback(text),
        recognized=parsed.recognized,
        created_at=created_at or datetime.now(timezone.utc),
    )


def feedback_texts(entries: Iterable[FeedbackEntry], *, limit: int) -> List[str]:
    """Texts of the most recent ``limit`` entries, oldest first."""
    ordered = sorted(entries, key=lambda entry: entry.created_at)
    return [entry.text for entry in ordered[-limit:]] if limit > 0 else []
