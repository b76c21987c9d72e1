"""Tool identifiers, handlers, registry and dispatcher."""

from .base import (
    CACHEABLE_TOOLS,
    LOCAL_TOOLS,
    REMOTE_TOOLS,
    LocalTool,
    RemoteToolService,
    ToolContext,
    ToolKind,
    ToolName,
    ToolResult,
    resolve_tool_name,
)
from .cache import ToolCallCache
from .dispatcher import ToolDispatcher
from .local import builtin_local_tools
from .registry import ToolRegistry
from .remote import CallableToolService, HttpToolService, RemoteTool

__all__ = [
    "CACHEABLE_TOOLS",
    "CallableToolService",
    "HttpToolService",
    "LOCAL_TOOLS",
    "LocalTool",
    "REMOTE_TOOLS",
    "RemoteTool",
    "RemoteToolService",
    "ToolCallCache",
    "ToolContext",
    "ToolDispatcher",
    "ToolKind",
    "ToolName",
    "ToolRegistry",
    "ToolResult",
    "builtin_local_tools",
    "resolve_tool_name",
]
