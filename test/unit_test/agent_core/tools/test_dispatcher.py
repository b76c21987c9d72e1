from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

import pytest

from free_agent.agent_core.errors import ToolValidationError
from free_agent.agent_core.factory import build_default_registry
from free_agent.agent_core.runtime import EngineConfig, FreeAgentEngine
from free_agent.agent_core.schemas.domain import BlackboardCategory, Session, SessionFile
from free_agent.agent_core.tools.base import ToolContext, ToolName, ToolResult

pytestmark = pytest.mark.asyncio


@dataclass(frozen=True)
class ExplodingBlackboardTool:
    """Writes to memory and then rejects the call."""

    name: ToolName = ToolName.write_blackboard

    async def execute(self, ctx: ToolContext, *, params: Dict[str, Any]) -> ToolResult:
        ctx.memory.append_blackboard(BlackboardCategory.observation, "half written")
        raise ToolValidationError("rejected after write")


@pytest.fixture
def engine(remote_service, reasoner):
    return FreeAgentEngine(
        registry=build_default_registry(remote_service),
        reasoner=reasoner,
        config=EngineConfig(attribute_threshold_chars=100),
    )


@pytest.fixture
def runtime(engine):
    session = Session(model="test", prompt="research", current_iteration=1)
    return engine.create_runtime(session)


@pytest.fixture
def received(remote_service) -> List[Dict[str, Any]]:
    """Params each remote web_scrape / brave_search call received."""
    calls: List[Dict[str, Any]] = []

    async def scrape(params):
        calls.append(params)
        return {"url": params["url"], "text": "short"}

    async def search(params):
        calls.append(params)
        return {"results": [params["query"]]}

    remote_service.register(ToolName.web_scrape, scrape)
    remote_service.register(ToolName.brave_search, search)
    return calls


async def test_unknown_tool_fails_the_call(engine, runtime):
    result = await engine.dispatcher.execute("launch_rockets", {}, runtime)
    assert not result.success
    assert result.error == "Unknown tool: launch_rockets"


async def test_disabled_tool_is_refused(engine, runtime):
    runtime.session.prompt_configuration.disabled_tools.append("read_prompt")
    result = await engine.dispatcher.execute("read_prompt", {}, runtime)
    assert not result.success
    assert "disabled" in result.error


async def test_instance_suffix_resolves_to_base_tool(engine, runtime):
    result = await engine.dispatcher.execute("read_prompt:main", {}, runtime)
    assert result == ToolResult.ok("research")


async def test_unconfigured_remote_tool_fails(engine, runtime):
    result = await engine.dispatcher.execute("send_email", {"to": "a@b.c"}, runtime)
    assert not result.success
    assert result.error == "Remote tool not configured: send_email"


async def test_cacheable_call_is_served_from_cache(engine, runtime, received):
    first = await engine.dispatcher.execute("brave_search", {"query": "pydantic"}, runtime)
    second = await engine.dispatcher.execute("brave_search:alt", {"query": "pydantic"}, runtime)

    assert first.success and not first.cached
    assert second.cached
    assert second.result == first.result
    assert len(received) == 1
    assert runtime.cache.size == 1


async def test_non_cacheable_call_runs_every_time(engine, runtime, remote_service):
    calls = []

    async def now(params):
        calls.append(params)
        return "12:00"

    remote_service.register(ToolName.get_time, now)
    await engine.dispatcher.execute("get_time", {}, runtime)
    await engine.dispatcher.execute("get_time", {}, runtime)
    assert len(calls) == 2
    assert runtime.cache.size == 0


async def test_save_as_stores_attribute_and_avoids_collisions(engine, runtime, received):
    first = await engine.dispatcher.execute("web_scrape", {"url": "http://a", "saveAs": "page"}, runtime)
    second = await engine.dispatcher.execute("web_scrape", {"url": "http://b", "saveAs": "page"}, runtime)

    assert first.result["_savedAsAttribute"] == "page"
    assert first.result["placeholder"] == "{{page}}"
    assert second.result["_savedAsAttribute"] == "page_2"
    assert all("saveAs" not in params for params in received)

    memory = runtime.store.committed
    assert list(memory.attributes) == ["page", "page_2"]
    assert memory.attributes["page"].result == {"url": "http://a", "text": "short"}
    assert memory.attributes["page"].iteration == 1
    assert "## page (from web_scrape)\n{{page}}" in memory.scratchpad


async def test_oversized_result_becomes_numbered_attribute(engine, runtime, remote_service):
    async def scrape(params):
        return "x" * 500

    remote_service.register(ToolName.web_scrape, scrape)
    result = await engine.dispatcher.execute("web_scrape", {"url": "http://big"}, runtime)

    assert result.result["_savedAsAttribute"] == "result_1"
    assert result.result["size"] == 500
    assert result.result["isBinary"] is False
    attribute = runtime.store.committed.attributes["result_1"]
    assert attribute.result_string == "x" * 500
    assert attribute.params == {"url": "http://big"}


async def test_small_result_passes_through(engine, runtime, received):
    result = await engine.dispatcher.execute("web_scrape", {"url": "http://small"}, runtime)
    assert result.result == {"url": "http://small", "text": "short"}
    assert runtime.store.committed.attributes == {}


async def test_binary_file_is_stored_once_as_attribute(engine, runtime):
    pdf = SessionFile(id="f-1", filename="paper.pdf", mime_type="application/pdf", content="JVBERi0xLjQK", size=12)
    runtime.session.files.append(pdf)

    result = await engine.dispatcher.execute("read_file", {"fileId": "f-1"}, runtime)

    assert result.result["_savedAsAttribute"] == "result_1"
    assert result.result["isBinary"] is True
    assert "JVBERi0xLjQK" not in str(result.result)
    attribute = runtime.store.committed.attributes["result_1"]
    assert attribute.is_binary
    assert attribute.mime_type == "application/pdf"
    assert attribute.result_string == "[Binary application/pdf - 0KB]"
    assert attribute.result["content"] == "JVBERi0xLjQK"


async def test_handler_exception_becomes_failed_result(engine, runtime, remote_service):
    async def broken(params):
        raise RuntimeError("boom")

    remote_service.register(ToolName.get_weather, broken)
    result = await engine.dispatcher.execute("get_weather", {"location": "Taipei"}, runtime)
    assert result == ToolResult.fail("RuntimeError: boom")


async def test_rejected_local_call_leaves_memory_untouched(engine, runtime):
    engine.registry.register(ExplodingBlackboardTool())
    result = await engine.dispatcher.execute("write_blackboard", {"content": "x"}, runtime)
    assert result == ToolResult.fail("rejected after write")
    assert runtime.store.committed.blackboard == []


async def test_references_expand_for_create_artifact_only(engine, runtime):
    await engine.dispatcher.execute("write_scratchpad", {"content": "final numbers"}, runtime)
    await engine.dispatcher.execute("write_blackboard", {"content": "see {{scratchpad}}"}, runtime)
    created = await engine.dispatcher.execute(
        "create_artifact", {"title": "Numbers", "content": "Report: {{scratchpad}}"}, runtime
    )

    memory = runtime.store.committed
    assert created.success
    assert memory.artifacts[0].content == "Report: final numbers"
    assert memory.blackboard[0].content == "see {{scratchpad}}"


async def test_references_expand_in_remote_params(engine, runtime, received):
    await engine.dispatcher.execute("write_scratchpad", {"content": "vector databases"}, runtime)
    await engine.dispatcher.execute("brave_search", {"query": "{{scratchpad}}"}, runtime)
    assert received == [{"query": "vector databases"}]


async def test_params_without_references_skip_resolution(engine, runtime, received, monkeypatch):
    from free_agent.agent_core.tools import dispatcher as dispatcher_module

    resolved = []
    real_resolve = dispatcher_module.resolve_references

    def recording_resolve(params, memory):
        resolved.append(params)
        return real_resolve(params, memory)

    monkeypatch.setattr(dispatcher_module, "resolve_references", recording_resolve)

    await engine.dispatcher.execute("brave_search", {"query": "plain text", "filters": ["news"]}, runtime)
    assert resolved == []
    assert received == [{"query": "plain text", "filters": ["news"]}]

    await engine.dispatcher.execute("brave_search", {"query": "{{scratchpad}}"}, runtime)
    assert resolved == [{"query": "{{scratchpad}}"}]
