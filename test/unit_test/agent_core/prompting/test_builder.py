from __future__ import annotations

from free_agent.agent_core.prompting.builder import PromptBuilder, truncate
from free_agent.agent_core.schemas.domain import (
    AssistanceRequest,
    BlackboardCategory,
    BlackboardEntry,
    Session,
    SessionMemory,
    ToolResultAttribute,
)
from free_agent.agent_core.schemas.prompt import PromptConfiguration
from free_agent.agent_core.tools.base import ToolName, ToolResult

TOOLS = [ToolName.read_file, ToolName.send_email, ToolName.brave_search]


def test_instructions_follow_template_order_with_dynamic_tools():
    text = PromptBuilder().build_instructions(PromptConfiguration(), TOOLS)

    assert text.index("## Identity") < text.index("## Available Tools") < text.index("## Response Format")
    assert "- read_file: Read an uploaded file. Params: fileId." in text
    assert "- send_email:" in text


def test_configuration_overrides_apply():
    config = PromptConfiguration(
        section_overrides={"guidelines": "Be terse.", "response_format": "anything goes"},
        disabled_sections=["identity"],
        order_overrides={"guidelines": -1},
        tool_description_overrides={"brave_search": "Search the web."},
        disabled_tools=["send_email"],
    )
    text = PromptBuilder().build_instructions(config, TOOLS)

    assert text.startswith("## Guidelines\nBe terse.")
    assert "## Identity" not in text
    assert "- brave_search: Search the web." in text
    assert "send_email" not in text
    # Readonly sections ignore overrides.
    assert "anything goes" not in text


def _session(**kwargs) -> Session:
    return Session(model="test", prompt="Find papers", max_iterations=10, current_iteration=4, **kwargs)


def test_snapshot_bounds_memory():
    memory = SessionMemory(
        blackboard=[BlackboardEntry(category=BlackboardCategory.observation, content=f"e{i}") for i in range(5)],
        scratchpad="0123456789",
        attributes={
            "result_1": ToolResultAttribute(
                name="result_1", tool="read_file", iteration=2, size=9000, is_binary=True,
                mime_type="image/png", result="data:image/png;base64,AAAA", result_string="[Binary image/png - 9KB]",
            )
        },
    )
    snapshot = PromptBuilder().build_snapshot(
        _session(),
        memory,
        blackboard_tail=2,
        scratchpad_chars=4,
        previous_result_chars=5,
        previous_results=[("web_scrape", ToolResult.ok("abcdefghij")), ("get_time", ToolResult.fail("timeout"))],
    )

    assert [e.content for e in snapshot.blackboard] == ["e3", "e4"]
    assert snapshot.blackboard_total == 5
    assert snapshot.scratchpad == "6789"
    assert snapshot.scratchpad_truncated
    assert snapshot.remaining_iterations == 6
    assert snapshot.attributes[0].name == "result_1"
    assert snapshot.previous_results[0].result == truncate("abcdefghij", 5)
    assert snapshot.previous_results[1].error == "timeout"

    rendered = PromptBuilder().render_snapshot(snapshot)
    assert "## Blackboard (last 2 of 5)" in rendered
    assert "{{result_1}} from read_file" in rendered
    assert "base64" not in rendered
    assert "4 of 10 (6 remaining)" in rendered


def test_snapshot_carries_the_assistance_answer():
    answer = AssistanceRequest(question="Which year?", response="2024")
    snapshot = PromptBuilder().build_snapshot(
        _session(),
        SessionMemory(),
        blackboard_tail=10,
        scratchpad_chars=100,
        previous_result_chars=100,
        assistance_answer=answer,
    )
    rendered = PromptBuilder().render_snapshot(snapshot)
    assert "## User Answer\nQ: Which year?\nA: 2024" in rendered
    assert "[empty]" in rendered


def test_truncate_marks_dropped_chars():
    assert truncate("short", 10) == "short"
    assert truncate("abcdefghij", 4) == "abcd\n... [truncated 6 chars]"
