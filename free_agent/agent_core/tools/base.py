from __future__ import annotations

"""Tool identifiers, handler protocols and execution data models.

Every tool the agent may call is a member of the closed ``ToolName`` enum.
At startup a ``ToolRegistry`` maps each name to exactly one handler of one of
two kinds:

- ``LocalTool``: runs in-process against the session's memory through a
  ``ToolContext``,
- ``RemoteTool``: delegates to a ``RemoteToolService`` keyed by tool name.

Handlers never touch the iteration loop directly. Local handlers signal
rejected input by raising ``ToolValidationError``; the dispatcher turns that
into a failed ``ToolResult``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol

if TYPE_CHECKING:
    from ..control.interrupts import InterruptController
    from ..control.self_authoring import SelfAuthoringGate
    from ..memory.store import MemoryWriter
    from ..orchestration.spawn import SpawnSlot
    from ..schemas.domain import Session


class ToolName(str, Enum):
    # local
    read_blackboard = "read_blackboard"
    write_blackboard = "write_blackboard"
    read_scratchpad = "read_scratchpad"
    write_scratchpad = "write_scratchpad"
    read_prompt = "read_prompt"
    read_prompt_files = "read_prompt_files"
    read_file = "read_file"
    read_attribute = "read_attribute"
    request_assistance = "request_assistance"
    create_artifact = "create_artifact"
    read_self = "read_self"
    write_self = "write_self"
    spawn = "spawn"
    # remote
    get_time = "get_time"
    brave_search = "brave_search"
    google_search = "google_search"
    web_scrape = "web_scrape"
    read_github_repo = "read_github_repo"
    read_github_file = "read_github_file"
    send_email = "send_email"
    image_generation = "image_generation"
    get_call_api = "get_call_api"
    post_call_api = "post_call_api"
    execute_sql = "execute_sql"
    read_database_schemas = "read_database_schemas"
    elevenlabs_tts = "elevenlabs_tts"
    get_weather = "get_weather"
    read_zip_contents = "read_zip_contents"
    read_zip_file = "read_zip_file"
    extract_zip_files = "extract_zip_files"
    pdf_info = "pdf_info"
    pdf_extract_text = "pdf_extract_text"
    ocr_image = "ocr_image"


class ToolKind(str, Enum):
    local = "local"
    remote = "remote"


LOCAL_TOOLS = frozenset(
    {
        ToolName.read_blackboard,
        ToolName.write_blackboard,
        ToolName.read_scratchpad,
        ToolName.write_scratchpad,
        ToolName.read_prompt,
        ToolName.read_prompt_files,
        ToolName.read_file,
        ToolName.read_attribute,
        ToolName.request_assistance,
        ToolName.create_artifact,
        ToolName.read_self,
        ToolName.write_self,
        ToolName.spawn,
    }
)

REMOTE_TOOLS = frozenset(set(ToolName) - LOCAL_TOOLS)

CACHEABLE_TOOLS = frozenset(
    {
        ToolName.brave_search,
        ToolName.google_search,
        ToolName.web_scrape,
        ToolName.read_github_repo,
        ToolName.read_github_file,
        ToolName.read_database_schemas,
        ToolName.get_weather,
        ToolName.read_zip_contents,
        ToolName.read_zip_file,
        ToolName.pdf_info,
        ToolName.pdf_extract_text,
    }
)

ATTRIBUTE_ELIGIBLE_TOOLS = frozenset(REMOTE_TOOLS | {ToolName.read_file})

# Params whose memory references are expanded before execution.
REFERENCE_RESOLVING_TOOLS = frozenset(REMOTE_TOOLS | {ToolName.create_artifact})


def resolve_tool_name(raw: str) -> Optional[ToolName]:
    """Map a requested tool name (optionally ``base:instance``) to a ``ToolName``."""
    base = raw.split(":", 1)[0].strip()
    try:
        return ToolName(base)
    except ValueError:
        return None


@dataclass(frozen=True)
class ToolResult:
    """Uniform result envelope for every tool call."""

    success: bool
    result: Any = None
    error: Optional[str] = None
    cached: bool = False

    @classmethod
    def ok(cls, result: Any = None) -> "ToolResult":
        return cls(success=True, result=result)

    @classmethod
    def fail(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error)


@dataclass(frozen=True)
class ToolContext:
    """Everything a local handler is allowed to use.

    Attributes
    ----------
    session:
        The owning session. Handlers read its prompt, files, feature flags and
        prompt configuration; they do not assign to it.
    memory:
        Writer over the staged memory of the current transaction.
    interrupts:
        Assistance request handle.
    gate:
        Self-authoring gate for ``read_self`` / ``write_self``.
    spawn_slot:
        Per-iteration slot a ``spawn`` call records its request into.
    """

    session: "Session"
    memory: "MemoryWriter"
    interrupts: "InterruptController"
    gate: "SelfAuthoringGate"
    spawn_slot: "SpawnSlot"


class LocalTool(Protocol):
    """Protocol for in-process tool handlers."""

    name: ToolName

    async def execute(self, ctx: ToolContext, *, params: Dict[str, Any]) -> ToolResult: ...


class RemoteToolService(Protocol):
    """Boundary to the external service that implements remote tools."""

    async def invoke(self, tool: ToolName, params: Dict[str, Any]) -> ToolResult: ...
