"""Remote tool handlers and service clients.

Overview
--------
Remote tools are not implemented in-process. The dispatcher hands each call to
a ``RemoteToolService`` together with the resolved ``ToolName`` and receives a
``ToolResult`` envelope back. Two services are provided:

- ``HttpToolService``: posts to ``<base_url>/functions/v1/<endpoint>`` with an
  optional Bearer token. Each tool maps to an endpoint name and some tools get
  a small body transform (HTTP method injection, schema action, image model
  default).
- ``CallableToolService``: maps tool names to async callables. Useful for tests
  and for embedding the engine next to in-process tool implementations.

Errors
------
Transport failures and non-2xx responses are returned as failed ``ToolResult``
objects, never raised, so one broken remote call cannot abort an iteration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import httpx

from .base import RemoteToolService, ToolKind, ToolName, ToolResult

logger = logging.getLogger(__name__)

REMOTE_ENDPOINTS: Dict[ToolName, str] = {
    ToolName.get_time: "time",
    ToolName.brave_search: "brave-search",
    ToolName.google_search: "google-search",
    ToolName.web_scrape: "web-scrape",
    ToolName.read_github_repo: "github-fetch",
    ToolName.read_github_file: "github-fetch",
    ToolName.send_email: "send-email",
    ToolName.image_generation: "run-nano",
    ToolName.get_call_api: "api-call",
    ToolName.post_call_api: "api-call",
    ToolName.execute_sql: "external-db",
    ToolName.read_database_schemas: "external-db",
    ToolName.elevenlabs_tts: "elevenlabs-tts",
    ToolName.get_weather: "tool_weather",
    ToolName.read_zip_contents: "tool_zip-handler",
    ToolName.read_zip_file: "tool_zip-handler",
    ToolName.extract_zip_files: "tool_zip-handler",
    ToolName.pdf_info: "tool_pdf-handler",
    ToolName.pdf_extract_text: "tool_pdf-handler",
    ToolName.ocr_image: "tool_ocr-handler",
}

DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"


def build_remote_body(tool: ToolName, params: Mapping[str, Any]) -> Dict[str, Any]:
    """Apply per-tool request body transforms."""
    if tool == ToolName.get_call_api:
        return {**params, "method": "GET"}
    if tool == ToolName.post_call_api:
        return {**params, "method": "POST"}
    if tool == ToolName.image_generation:
        return {"prompt": params.get("prompt"), "model": params.get("model") or DEFAULT_IMAGE_MODEL}
    if tool == ToolName.read_database_schemas:
        return {**params, "action": "schemas"}
    return dict(params)


@dataclass(frozen=True)
class RemoteTool:
    """Registry entry for a remote tool; execution goes through ``service``."""

    name: ToolName
    service: RemoteToolService
    kind: ToolKind = ToolKind.remote

    async def invoke(self, params: Dict[str, Any]) -> ToolResult:
        return await self.service.invoke(self.name, params)


class HttpToolService:
    """HTTP client for a function-style remote tool backend."""

    def __init__(
        self,
        base_url: str,
        *,
        token: Optional[str] = None,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Create the service client.

        Args:
            base_url: Base URL of the backend; endpoints live under ``/functions/v1``.
            token: Bearer token sent as ``Authorization`` when provided.
            timeout: Default timeout of the internal client.
            client: Optional preconfigured ``httpx.AsyncClient`` (tests pass one
                built on ``httpx.MockTransport``).
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    def _headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def invoke(self, tool: ToolName, params: Dict[str, Any]) -> ToolResult:
        endpoint = REMOTE_ENDPOINTS.get(tool)
        if endpoint is None:
            return ToolResult.fail(f"Unknown remote tool: {tool.value}")

        url = f"{self.base_url}/functions/v1/{endpoint}"
        body = build_remote_body(tool, params)
        logger.debug(f"Invoking remote tool {tool.value} at {url}")
        try:
            response = await self._client.post(url, json=body, headers=self._headers())
        except httpx.HTTPError as exc:
            logger.warning(f"Remote tool {tool.value} transport failure: {exc!r}")
            return ToolResult.fail(f"Remote call failed: {exc}")

        if response.status_code >= 400:
            return ToolResult.fail(f"{response.status_code}: {response.text[:500]}")

        try:
            data: Any = response.json()
        except ValueError:
            data = response.text

        if isinstance(data, dict) and data.get("success") is False:
            return ToolResult.fail(str(data.get("error") or "Remote tool reported failure"))
        return ToolResult.ok(data)

    async def aclose(self) -> None:
        await self._client.aclose()


RemoteCallable = Callable[[Dict[str, Any]], Awaitable[Any]]


class CallableToolService:
    """Remote service backed by plain async callables keyed by tool name."""

    def __init__(self, handlers: Optional[Mapping[ToolName, RemoteCallable]] = None) -> None:
        self._handlers: Dict[ToolName, RemoteCallable] = dict(handlers or {})

    def register(self, tool: ToolName, fn: RemoteCallable) -> None:
        self._handlers[tool] = fn

    async def invoke(self, tool: ToolName, params: Dict[str, Any]) -> ToolResult:
        fn = self._handlers.get(tool)
        if fn is None:
            return ToolResult.fail(f"Remote tool not configured: {tool.value}")
        result = await fn(build_remote_body(tool, params))
        if isinstance(result, ToolResult):
            return result
        return ToolResult.ok(result)
