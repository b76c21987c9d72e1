from __future__ import annotations

import asyncio
import inspect
import json
from typing import Any, Callable, Iterable, List, Optional

import httpx
import pytest
import pytest_asyncio

from free_agent.agent_core.factory import build_default_registry
from free_agent.agent_core.reasoning.base import ReasoningRequest, ReasoningResponse
from free_agent.agent_core.runtime import EngineConfig, FreeAgentEngine
from free_agent.agent_core.service import FreeAgentService
from free_agent.agent_core.tools.remote import CallableToolService


class ScriptedReasoner:
    """Reasoning collaborator that replays a script of decisions.

    Each step is a decision dict (sent as JSON text), raw text, a
    ``ReasoningResponse``, an exception to raise, or a callable taking the
    request and returning any of those (coroutines are awaited). Once the
    script is exhausted ``default`` is returned.
    """

    def __init__(self, script: Optional[Iterable[Any]] = None, default: Any = None) -> None:
        self.script: List[Any] = list(script or [])
        self.default = default if default is not None else {"reasoning": "keep working"}
        self.requests: List[ReasoningRequest] = []

    async def decide(self, request: ReasoningRequest) -> ReasoningResponse:
        self.requests.append(request)
        step = self.script.pop(0) if self.script else self.default
        if callable(step):
            step = step(request)
        if inspect.isawaitable(step):
            step = await step
        if isinstance(step, BaseException):
            raise step
        if isinstance(step, ReasoningResponse):
            return step
        text = step if isinstance(step, str) else json.dumps(step)
        return ReasoningResponse.from_text(text)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout)


@pytest.fixture
def reasoner() -> ScriptedReasoner:
    return ScriptedReasoner()


@pytest.fixture
def scripted() -> type:
    """The ``ScriptedReasoner`` class, for tests that need more than one."""
    return ScriptedReasoner


@pytest.fixture
def until() -> Callable[..., Any]:
    return wait_until


@pytest.fixture
def remote_service() -> CallableToolService:
    return CallableToolService()


@pytest_asyncio.fixture
async def make_service(remote_service: CallableToolService):
    """Factory for services over the default registry; every loop is cancelled on teardown."""
    created: List[FreeAgentService] = []

    def _make(reasoner: Any, *, remote: Optional[Any] = None, **config: Any) -> FreeAgentService:
        engine = FreeAgentEngine(
            registry=build_default_registry(remote or remote_service),
            reasoner=reasoner,
            config=EngineConfig(**config),
        )
        svc = FreeAgentService(engine)
        created.append(svc)
        return svc

    yield _make

    for svc in created:
        await svc.shutdown()


@pytest_asyncio.fixture
async def service(make_service, reasoner: ScriptedReasoner) -> FreeAgentService:
    return make_service(reasoner)


@pytest.fixture(autouse=True)
def _global_offline_http_guard(monkeypatch: pytest.MonkeyPatch):
    allowed_prefixes: Iterable[str] = (
        "http://mock",
        "https://mock",
        "http://localhost",
        "http://127.0.0.1",
        "http://0.0.0.0",
        "/",  # Allow relative paths (used by ASGI transport)
    )

    orig_sync = httpx._client.Client.request
    orig_async = httpx._client.AsyncClient.request

    def _is_allowed(url_str: str) -> bool:
        return any(url_str.startswith(p) for p in allowed_prefixes)

    def offline_sync(self, method, url, *args, **kwargs):
        url_str = str(url)
        if _is_allowed(url_str):
            return orig_sync(self, method, url, *args, **kwargs)
        raise RuntimeError(f"External HTTP blocked by global offline guard: {url_str}")

    async def offline_async(self, method, url, *args, **kwargs):
        url_str = str(url)
        if _is_allowed(url_str):
            return await orig_async(self, method, url, *args, **kwargs)
        raise RuntimeError(f"External HTTP blocked by global offline guard (async): {url_str}")

    monkeypatch.setattr(httpx._client.Client, "request", offline_sync, raising=True)
    monkeypatch.setattr(httpx._client.AsyncClient, "request", offline_async, raising=True)
