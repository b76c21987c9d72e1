from __future__ import annotations

import json
from typing import List

import httpx
import pytest

from free_agent.agent_core.tools.base import ToolName, ToolResult
from free_agent.agent_core.tools.remote import (
    DEFAULT_IMAGE_MODEL,
    CallableToolService,
    HttpToolService,
    build_remote_body,
)

pytestmark = pytest.mark.asyncio


def _service(handler, token: str = "secret") -> HttpToolService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpToolService("http://mock-tools/", token=token, client=client)


async def test_posts_to_function_endpoint_with_bearer_token():
    captured: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={"results": [{"title": "LangGraph"}]})

    service = _service(handler)
    result = await service.invoke(ToolName.brave_search, {"query": "langgraph", "numResults": 3})
    await service.aclose()

    assert result == ToolResult.ok({"results": [{"title": "LangGraph"}]})
    request = captured[0]
    assert request.method == "POST"
    assert str(request.url) == "http://mock-tools/functions/v1/brave-search"
    assert request.headers["Authorization"] == "Bearer secret"
    assert json.loads(request.content) == {"query": "langgraph", "numResults": 3}


async def test_api_call_tools_inject_http_method():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"status": 200})

    service = _service(handler, token=None)
    await service.invoke(ToolName.get_call_api, {"url": "https://api.example.org"})
    await service.invoke(ToolName.post_call_api, {"url": "https://api.example.org", "body": {"a": 1}})

    assert bodies[0]["method"] == "GET"
    assert bodies[1] == {"url": "https://api.example.org", "body": {"a": 1}, "method": "POST"}


async def test_error_status_becomes_failed_result():
    service = _service(lambda request: httpx.Response(502, text="upstream down"))
    result = await service.invoke(ToolName.web_scrape, {"url": "https://example.org"})
    assert result == ToolResult.fail("502: upstream down")


async def test_reported_failure_becomes_failed_result():
    service = _service(lambda request: httpx.Response(200, json={"success": False, "error": "quota exceeded"}))
    result = await service.invoke(ToolName.google_search, {"query": "x"})
    assert result == ToolResult.fail("quota exceeded")


async def test_plain_text_body_is_returned_as_string():
    service = _service(lambda request: httpx.Response(200, text="2025-01-01T00:00:00Z"))
    result = await service.invoke(ToolName.get_time, {})
    assert result == ToolResult.ok("2025-01-01T00:00:00Z")


async def test_transport_error_becomes_failed_result():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    service = _service(handler)
    result = await service.invoke(ToolName.get_weather, {"location": "Taipei"})

    assert not result.success
    assert result.error.startswith("Remote call failed")


async def test_body_transforms():
    assert build_remote_body(ToolName.image_generation, {"prompt": "a cat", "size": "big"}) == {
        "prompt": "a cat",
        "model": DEFAULT_IMAGE_MODEL,
    }
    assert build_remote_body(ToolName.read_database_schemas, {"connectionString": "pg://"})["action"] == "schemas"
    assert build_remote_body(ToolName.execute_sql, {"query": "select 1"}) == {"query": "select 1"}


async def test_callable_service_wraps_plain_values():
    async def weather(params):
        return {"location": params["location"], "temp": 21}

    service = CallableToolService({ToolName.get_weather: weather})
    assert await service.invoke(ToolName.get_weather, {"location": "Taipei"}) == ToolResult.ok(
        {"location": "Taipei", "temp": 21}
    )
    assert not (await service.invoke(ToolName.send_email, {})).success
