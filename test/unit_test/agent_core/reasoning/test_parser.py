from __future__ import annotations

import json

import pytest

from free_agent.agent_core.errors import DecisionParseError
from free_agent.agent_core.reasoning.base import ReasoningResponse
from free_agent.agent_core.reasoning.parser import parse_decision
from free_agent.agent_core.schemas.decision import DecisionStatus
from free_agent.agent_core.schemas.domain import BlackboardCategory

DECISION = {
    "reasoning": "search first",
    "tool_calls": [{"tool": "brave_search", "params": {"query": "langgraph"}}],
    "blackboard_entry": {"category": "plan", "content": "search then summarize"},
    "status": "in_progress",
}


def test_plain_json():
    decision = parse_decision(json.dumps(DECISION))
    assert decision.tool_calls[0].tool == "brave_search"
    assert decision.blackboard_entry.category == BlackboardCategory.plan
    assert decision.status == DecisionStatus.in_progress


def test_fenced_json_inside_prose():
    raw = f"Here is my decision:\n```json\n{json.dumps(DECISION)}\n```\nThanks."
    assert parse_decision(raw).reasoning == "search first"


def test_object_span_inside_prose():
    raw = f"Sure! {json.dumps({'status': 'completed', 'final_report': {'summary': 'done'}})} Hope that helps."
    decision = parse_decision(raw)
    assert decision.status == DecisionStatus.completed
    assert decision.final_report.summary == "done"


def test_unknown_keys_are_ignored_and_unknown_category_falls_back():
    decision = parse_decision(
        json.dumps({"mood": "great", "blackboard_entry": {"category": "musing", "content": "hmm"}})
    )
    assert decision.blackboard_entry.category == BlackboardCategory.observation
    assert decision.tool_calls == []


@pytest.mark.parametrize(
    "raw, message",
    [
        ("", "Empty response"),
        ("I will think about it.", "No JSON object"),
        ("[1, 2, 3]", "No JSON object"),
        ('{"status": "dancing"}', "not a valid decision"),
    ],
)
def test_failures_raise_with_raw_text(raw, message):
    with pytest.raises(DecisionParseError, match=message) as info:
        parse_decision(raw)
    assert info.value.raw_response == raw


def test_response_from_text_captures_parse_error_detail():
    raw = "no json here " * 50
    response = ReasoningResponse.from_text(raw)

    assert not response.ok
    assert response.raw_response == raw
    assert response.parse_error.response_length == len(raw)
    assert response.parse_error.preview == raw[:500]
    assert response.parse_error.ending == raw[-200:]
    assert response.parsed_payload() is None
