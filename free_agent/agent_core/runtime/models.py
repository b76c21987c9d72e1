from __future__ import annotations

"""Engine configuration, per-session runtime bundle and LangGraph state types.

- ``EngineConfig`` holds the tunables of the iteration loop. It is derived
  from ``Settings`` by application wiring and injected into the engine.
- ``SessionRuntime`` bundles a ``Session`` aggregate with everything that
  lives only in process: its memory store, tool cache, control handles and
  the active loop task.
- ``_LoopState`` is the small state dict passed between LangGraph nodes.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, NotRequired, Optional, Required, Tuple, TypedDict

from pydantic import Field

from ..control.interrupts import InterruptController
from ..control.self_authoring import SelfAuthoringGate
from ..memory.store import MemoryStore
from ..orchestration.spawn import SpawnSlot
from ..schemas.base import BaseSchema
from ..schemas.decision import AgentDecision
from ..schemas.domain import Session
from ..tools.base import ToolResult
from ..tools.cache import ToolCallCache


class EngineConfig(BaseSchema):
    default_model: str = "google-gla:gemini-2.5-flash"
    max_iterations: int = Field(default=50, ge=1)
    parse_retry_limit: int = Field(default=3, ge=1)
    auto_retry_parse_failures: bool = False
    attribute_threshold_chars: int = Field(default=8000, ge=1)
    tool_cache_ttl_seconds: Optional[float] = 300.0
    blackboard_tail: int = Field(default=50, ge=1)
    scratchpad_snapshot_chars: int = Field(default=50_000, ge=1)
    previous_result_chars: int = Field(default=8000, ge=1)
    max_children: int = Field(default=5, ge=1)
    child_max_iterations: int = Field(default=20, ge=1)

    @classmethod
    def from_settings(cls, settings) -> "EngineConfig":
        return cls(
            default_model=settings.default_model,
            max_iterations=settings.max_iterations,
            parse_retry_limit=settings.parse_retry_limit,
            auto_retry_parse_failures=settings.auto_retry_parse_failures,
            attribute_threshold_chars=settings.attribute_threshold_chars,
            tool_cache_ttl_seconds=settings.tool_cache_ttl_seconds,
            blackboard_tail=settings.blackboard_tail,
            scratchpad_snapshot_chars=settings.scratchpad_snapshot_chars,
            previous_result_chars=settings.previous_result_chars,
            max_children=settings.max_children,
            child_max_iterations=settings.child_max_iterations,
        )


@dataclass
class SessionRuntime:
    """In-process state of one session in the arena."""

    session: Session
    store: MemoryStore
    cache: ToolCallCache
    interrupts: InterruptController
    gate: SelfAuthoringGate
    spawn_slot: SpawnSlot = field(default_factory=SpawnSlot)
    task: Optional["asyncio.Task[None]"] = None
    # tool call id -> tool name for calls currently executing
    active_tools: Dict[str, str] = field(default_factory=dict)
    # (tool, result) pairs of the last dispatched iteration
    previous_results: List[Tuple[str, ToolResult]] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.session.id

    @property
    def busy(self) -> bool:
        return self.task is not None and not self.task.done()


class _LoopState(TypedDict):
    """Mutable LangGraph state for one activation of a session loop.

    Required keys:

    - ``session_id``: the session being driven.

    Optional keys:

    - ``decision``: the decision returned by the current reasoning step.
    - ``next``: routing label chosen by the node that just ran.
    """

    session_id: Required[str]
    decision: NotRequired[Optional[AgentDecision]]
    next: NotRequired[str]
