from __future__ import annotations

"""Convenience factories for wiring the agent core.

This module contains small helpers to build the default tool registry and a
ready-to-use ``FreeAgentService`` from ``Settings``.

The intent is to keep application wiring and tests concise, while still
allowing deployments to provide their own registry, reasoning collaborator
and remote tool service.
"""

from typing import Optional

from free_agent.core.config import Settings, settings as default_settings

from .prompting.builder import PromptBuilder
from .reasoning.base import ReasoningCollaborator
from .repos.interfaces import EventRepository
from .repos.memory import InMemoryEventRepository, SessionArena
from .runtime.engine import FreeAgentEngine
from .runtime.events import EventBus
from .runtime.models import EngineConfig
from .service import FreeAgentService
from .tools.base import REMOTE_TOOLS, RemoteToolService
from .tools.local import builtin_local_tools
from .tools.registry import ToolRegistry
from .tools.remote import CallableToolService, HttpToolService, RemoteTool


def build_default_registry(remote_service: RemoteToolService) -> ToolRegistry:
    """Build the default ``ToolRegistry``.

    Every local tool is registered with its built-in handler and every remote
    tool is bound to ``remote_service``.
    """
    reg = ToolRegistry()
    for tool in builtin_local_tools():
        reg.register(tool)
    for name in sorted(REMOTE_TOOLS, key=lambda t: t.value):
        reg.register(RemoteTool(name=name, service=remote_service))
    return reg


def build_remote_service(settings: Settings) -> RemoteToolService:
    """HTTP tool service when a URL is configured, otherwise an empty callable service."""
    cfg = settings.tool_service
    if cfg.url:
        return HttpToolService(cfg.url, token=cfg.token, timeout=cfg.timeout)
    return CallableToolService()


def build_service(
    *,
    settings: Optional[Settings] = None,
    reasoner: Optional[ReasoningCollaborator] = None,
    remote_service: Optional[RemoteToolService] = None,
    event_repo: Optional[EventRepository] = None,
) -> FreeAgentService:
    """Construct a ``FreeAgentService`` with its engine from settings and overrides."""
    cfg = settings or default_settings
    if reasoner is None:
        from .reasoning.pydantic_ai import PydanticAIReasoner

        reasoner = PydanticAIReasoner()
    engine = FreeAgentEngine(
        registry=build_default_registry(remote_service or build_remote_service(cfg)),
        reasoner=reasoner,
        config=EngineConfig.from_settings(cfg),
        builder=PromptBuilder(),
        arena=SessionArena(),
        events=EventBus(event_repo or InMemoryEventRepository()),
    )
    return FreeAgentService(engine)
