from __future__ import annotations

import json
from datetime import date

import pytest

from shedai.engine.errors import ProposerResponseError
from shedai.engine.models import FreeWindow, PlacementSource, SessionMessage, Task
from shedai.engine.prioritizer import prioritize
from shedai.engine.proposer import (
    STATUS_DEGRADED,
    STATUS_DISABLED,
    STATUS_OK,
    NullProposer,
    ProposalRequest,
    StaticProposer,
    build_messages,
    parse_response,
    request_placements,
)


def _request(**overrides) -> ProposalRequest:
    tasks = prioritize([Task("t1", "Essay", 3), Task("t2", "Reading", 5)], anchor_day=1, days=[1, 2, 3, 4, 5])
    values = dict(
        anchor_day=1,
        anchor_date=date(2026, 10, 19),
        free_windows=(FreeWindow(1, 1080, 1200), FreeWindow(2, 1080, 1200)),
        tasks=tasks.tasks,
        constraint_text="No work on weekends.",
    )
    values.update(overrides)
    return ProposalRequest(**values)


def test_disabled_proposer_yields_no_candidates() -> None:
    result = request_placements(NullProposer(), _request())
    assert result.status == STATUS_DISABLED
    assert result.placements == ()
    assert result.attempts == 0


def test_valid_reply_is_parsed_and_unknown_tasks_discarded() -> None:
    proposer = StaticProposer(
        [
            {
                "placements": [
                    {"taskId": "t1", "day": 1, "start": "18:00", "end": "20:00"},
                    {"taskId": "ghost", "day": 1, "start": "18:00", "end": "19:00"},
                    {"taskId": "t2", "day": 2, "start": "20:00", "end": "19:00"},
                ],
                "unplaced": ["t2"],
            }
        ]
    )
    result = request_placements(proposer, _request())
    assert result.status == STATUS_OK
    assert [(p.task_id, p.day, p.start_minute, p.end_minute) for p in result.placements] == [("t1", 1, 1080, 1200)]
    assert result.placements[0].source is PlacementSource.PROPOSER
    assert result.discarded == 2
    assert result.unplaced == ("t2",)


def test_broken_reply_is_reasked_once() -> None:
    good = json.dumps({"placements": [{"taskId": "t1", "day": 2, "start": "18:00", "end": "20:00"}]})
    proposer = StaticProposer(["I think Tuesday evening works", good])
    result = request_placements(proposer, _request(), max_attempts=2)
    assert result.status == STATUS_OK
    assert result.attempts == 2
    assert len(proposer.requests) == 2


def test_repeated_garbage_degrades() -> None:
    proposer = StaticProposer(["nope", '{"placements": "later"}'])
    result = request_placements(proposer, _request(), max_attempts=2)
    assert result.status == STATUS_DEGRADED
    assert result.placements == ()
    assert result.error


def test_transport_failure_degrades_without_retry() -> None:
    proposer = StaticProposer([])
    result = request_placements(proposer, _request(), max_attempts=3)
    assert result.status == STATUS_DEGRADED
    assert result.attempts == 1


def test_no_tasks_skips_the_call() -> None:
    proposer = StaticProposer([])
    result = request_placements(proposer, _request(tasks=()))
    assert result.status == STATUS_OK
    assert proposer.requests == []


def test_parse_response_accepts_wrapped_json_and_bare_lists() -> None:
    wrapped = 'Sure!\n```json\n{"placements": [{"taskId": 1, "day": 1, "start": "9:00", "end": "10:00"}]}\n```'
    assert parse_response(wrapped).placements[0].task_id == "1"
    bare = parse_response('[{"taskId": "t1", "day": 3, "start": "07:00", "end": "08:30"}]')
    assert bare.placements[0].day == 3


@pytest.mark.parametrize("content", ["", "   ", "[1, 2", '"just a string"', '{"placements": [{"day": 1}]}'])
def test_parse_response_rejects_unusable_content(content: str) -> None:
    with pytest.raises(ProposerResponseError):
        parse_response(content)


def test_build_messages_carries_history_and_feedback() -> None:
    request = _request(history=(SessionMessage("user", "mornings please"), SessionMessage("assistant", "ok")))
    messages = build_messages(request, feedback="response is not JSON")
    assert messages[0]["role"] == "system"
    assert [m["content"] for m in messages[1:3]] == ["mornings please", "ok"]
    payload = json.loads(messages[3]["content"])
    assert payload["anchorWeekday"] == "Monday"
    assert payload["anchorDate"] == "2026-10-19"
    assert payload["freeWindows"][0] == {"day": 1, "start": "18:00", "end": "20:00"}
    assert {task["id"] for task in payload["tasks"]} == {"t1", "t2"}
    assert "response is not JSON" in messages[-1]["content"]
