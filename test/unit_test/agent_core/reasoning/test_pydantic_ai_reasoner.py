from __future__ import annotations

import json
from typing import List

import pytest

from free_agent.agent_core.reasoning.base import MemorySnapshot, ReasoningRequest
from free_agent.agent_core.schemas.decision import DecisionStatus

pytest.importorskip("pydantic_ai")


def _request(instructions: str = "## Identity\nYou are Free Agent.", rendered: str = "## Task\nFind papers") -> ReasoningRequest:
    return ReasoningRequest(
        session_id="s-1",
        model="test",
        instructions=instructions,
        snapshot=MemorySnapshot(prompt="Find papers", iteration=1, max_iterations=5, remaining_iterations=4),
        rendered_input=rendered,
    )


@pytest.fixture(autouse=True)
def _no_real_models(monkeypatch):
    from pydantic_ai import models

    monkeypatch.setattr(models, "ALLOW_MODEL_REQUESTS", False)


@pytest.mark.asyncio
async def test_function_model_decision_is_parsed_and_prompts_are_routed():
    from pydantic_ai.messages import ModelMessage, ModelResponse, SystemPromptPart, TextPart, UserPromptPart
    from pydantic_ai.models.function import AgentInfo, FunctionModel

    from free_agent.agent_core.reasoning.pydantic_ai import PydanticAIReasoner

    seen_system: List[str] = []
    seen_user: List[str] = []

    def call_model(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        for part in messages[0].parts:
            if isinstance(part, SystemPromptPart):
                seen_system.append(part.content)
            if isinstance(part, UserPromptPart):
                seen_user.append(part.content)
        decision = {"reasoning": "look it up", "tool_calls": [{"tool": "brave_search", "params": {"query": "rag"}}]}
        return ModelResponse(parts=[TextPart(f"```json\n{json.dumps(decision)}\n```")])

    reasoner = PydanticAIReasoner(model_override=FunctionModel(call_model))
    response = await reasoner.decide(_request())

    assert response.ok
    assert response.decision.tool_calls[0].params == {"query": "rag"}
    assert response.raw_response.startswith("```json")
    assert seen_system == ["## Identity\nYou are Free Agent."]
    assert seen_user == ["## Task\nFind papers"]


@pytest.mark.asyncio
async def test_changed_instructions_reach_the_model():
    from pydantic_ai.messages import ModelMessage, ModelResponse, SystemPromptPart, TextPart
    from pydantic_ai.models.function import AgentInfo, FunctionModel

    from free_agent.agent_core.reasoning.pydantic_ai import PydanticAIReasoner

    seen_system: List[str] = []

    def call_model(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        seen_system.extend(p.content for p in messages[0].parts if isinstance(p, SystemPromptPart))
        return ModelResponse(parts=[TextPart('{"status": "in_progress"}')])

    reasoner = PydanticAIReasoner(model_override=FunctionModel(call_model))
    await reasoner.decide(_request("first"))
    await reasoner.decide(_request("first"))
    await reasoner.decide(_request("second"))

    assert seen_system == ["first", "first", "second"]


@pytest.mark.asyncio
async def test_test_model_text_output():
    from pydantic_ai.models.test import TestModel

    from free_agent.agent_core.reasoning.pydantic_ai import PydanticAIReasoner

    reasoner = PydanticAIReasoner(
        model_override=TestModel(custom_output_text='{"status": "completed", "final_report": {"summary": "done"}}')
    )
    response = await reasoner.decide(_request())

    assert response.decision.status == DecisionStatus.completed
    assert response.decision.final_report.summary == "done"


@pytest.mark.asyncio
async def test_unparseable_output_becomes_parse_error():
    from pydantic_ai.models.test import TestModel

    from free_agent.agent_core.reasoning.pydantic_ai import PydanticAIReasoner

    reasoner = PydanticAIReasoner(model_override=TestModel(custom_output_text="I am not sure what to do."))
    response = await reasoner.decide(_request())

    assert not response.ok
    assert response.raw_response == "I am not sure what to do."
    assert response.parse_error.message == "No JSON object found in response"


def test_agents_are_cached_per_instructions_and_bounded():
    from pydantic_ai.models.test import TestModel

    from free_agent.agent_core.reasoning.pydantic_ai import PydanticAIReasoner

    reasoner = PydanticAIReasoner(model_override=TestModel(), max_agents=2)
    first = reasoner._agent_for(_request("session one"))
    second = reasoner._agent_for(_request("session two"))

    assert first is not second
    assert reasoner._agent_for(_request("session one")) is first
    assert reasoner._agent_for(_request("session two")) is second
    assert len(reasoner._agents) == 2

    reasoner._agent_for(_request("session three"))
    assert len(reasoner._agents) == 2
    assert reasoner._agent_for(_request("session two")) is second
    assert reasoner._agent_for(_request("session one")) is not first
