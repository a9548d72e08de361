"""Ordered rule tables for free-text parsing.

Each rule pairs a compiled matcher with an extractor. Rules are tried in order
and the first extractor that accepts its match wins. An extractor declines a
match by raising ``ValueError``. Callers always receive either ``Parsed`` or
``Unrecognized`` and must branch on the type.
"""
from __future__ import annotations

from dataclasses import dataclass
from re import Match, Pattern
from typing import Callable, Generic, Iterable, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Parsed(Generic[T]):
    value: T
    rule: str
    span: tuple[int, int] = (0, 0)


@dataclass(frozen=True)
class Unrecognized:
    text: str
    reason: str = "no rule matched"


ParseResult = Union[Parsed[T], Unrecognized]


@dataclass(frozen=True)
class Rule(Generic[T]):
    name: str
    matcher: Pattern[str]
    extractor: Callable[[Match[str]], T]


def first_match(text: str, rules: Iterable[Rule[T]]) -> ParseResult:
    for rule in rules:
        for match in rule.matcher.finditer(text):
            try:
                value = rule.extractor(match)
            except ValueError:
                continue
            return Parsed(value=value, rule=rule.name, span=match.span())
    return Unrecognized(text=text)


def all_matches(text: str, rules: Iterable[Rule[T]]) -> list[Parsed[T]]:
    """Collect every accepted match across the table, in rule order."""
    found: list[Parsed[T]] = []
    for rule in rules:
        for match in rule.matcher.finditer(text):
            try:
                value = rule.extractor(match)
            except ValueError:
                continue
            found.append(Parsed(value=value, rule=rule.name, span=match.span()))
    return found
