from __future__ import annotations

import asyncio

import pytest

from free_agent.agent_core.tools.base import ToolName, ToolResult, resolve_tool_name
from free_agent.agent_core.tools.binary import binary_summary, detect_binary
from free_agent.agent_core.tools.cache import ToolCallCache, cache_key


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestBinaryDetection:
    def test_non_textual_mime_type_is_binary(self):
        info = detect_binary(ToolName.read_file, {"content": "JVBERi0xLjQK", "mimeType": "application/pdf"})
        assert info is not None
        assert info.mime_type == "application/pdf"
        assert info.size == len("JVBERi0xLjQK")

    def test_textual_mime_types_are_not_binary(self):
        assert detect_binary(ToolName.read_file, {"content": "a,b\n1,2", "mimeType": "text/csv"}) is None
        assert detect_binary(ToolName.read_file, {"content": "{}", "mimeType": "application/json"}) is None
        assert detect_binary(ToolName.read_file, {"content": "{}", "mimeType": "application/ld+json"}) is None

    def test_data_uri_is_binary_with_its_mime_type(self):
        info = detect_binary(ToolName.web_scrape, "data:image/png;base64,iVBORw0KGgo=")
        assert info is not None
        assert info.mime_type == "image/png"

    def test_long_base64_string_is_binary(self):
        payload = "QUJD" * 300
        info = detect_binary(ToolName.get_call_api, {"content": payload})
        assert info is not None
        assert info.mime_type == "application/octet-stream"

    def test_image_and_audio_payloads_of_media_tools(self):
        image = detect_binary(ToolName.image_generation, {"imageUrl": "data:image/png;base64,AAAA"})
        audio = detect_binary(ToolName.elevenlabs_tts, {"audioContent": "SUQz", "contentType": "audio/mpeg"})
        assert image.mime_type == "image/png"
        assert audio.mime_type == "audio/mpeg"
        # Only media tools treat imageUrl as a payload.
        assert detect_binary(ToolName.web_scrape, {"imageUrl": "https://example.org/cat.png"}) is None

    def test_summary_format(self):
        assert binary_summary("image/png", 2048) == "[Binary image/png - 2KB]"


def test_resolve_tool_name_accepts_instance_suffix():
    assert resolve_tool_name("brave_search:primary") == ToolName.brave_search
    assert resolve_tool_name(" read_file ") == ToolName.read_file
    assert resolve_tool_name("rm_rf") is None


class TestToolCallCache:
    def test_key_is_independent_of_param_order(self):
        assert cache_key(ToolName.brave_search, {"q": "x", "n": 3}) == cache_key(ToolName.brave_search, {"n": 3, "q": "x"})
        assert cache_key(ToolName.brave_search, {"q": "x"}) != cache_key(ToolName.google_search, {"q": "x"})

    def test_entries_expire_after_ttl(self):
        clock = FakeClock()
        cache = ToolCallCache(ttl=10, clock=clock)
        cache.put("k", ToolResult.ok("v"))

        clock.now += 5
        assert cache.get("k") == ToolResult.ok("v")
        clock.now += 6
        assert cache.get("k") is None
        assert cache.size == 0

    def test_failures_are_not_stored(self):
        cache = ToolCallCache()
        cache.put("k", ToolResult.fail("boom"))
        assert cache.get("k") is None

    @pytest.mark.asyncio
    async def test_identical_inflight_calls_share_one_execution(self):
        cache = ToolCallCache()
        calls = 0
        release = asyncio.Event()

        async def run() -> ToolResult:
            nonlocal calls
            calls += 1
            await release.wait()
            return ToolResult.ok({"hits": 1})

        first = asyncio.create_task(cache.get_or_run("k", run))
        await asyncio.sleep(0)
        second = asyncio.create_task(cache.get_or_run("k", run))
        await asyncio.sleep(0)
        release.set()

        (r1, cached1), (r2, cached2) = await asyncio.gather(first, second)
        assert calls == 1
        assert r1 == r2 == ToolResult.ok({"hits": 1})
        assert (cached1, cached2) == (False, True)
        assert cache.size == 1

    @pytest.mark.asyncio
    async def test_failed_run_is_not_cached(self):
        cache = ToolCallCache()

        async def fail() -> ToolResult:
            return ToolResult.fail("rate limited")

        result, cached = await cache.get_or_run("k", fail)
        assert not result.success
        assert not cached
        assert cache.size == 0
