from __future__ import annotations

"""Tool registry.

The registry maps every ``ToolName`` to exactly one handler, either a
``LocalTool`` or a ``RemoteTool``. It is built once at startup (see
``free_agent.agent_core.factory.build_default_registry``) and only read while
sessions run.
"""

from typing import Dict, List, Union

from .base import LocalTool, ToolKind, ToolName
from .remote import RemoteTool

ToolHandler = Union[LocalTool, RemoteTool]


class ToolRegistry:
    """
    In-memory mapping of tool names to handlers.

    Notes:
        - ``register`` overwrites any existing mapping for the tool name.
        - ``get`` will raise ``KeyError`` if the tool is missing.
    """

    def __init__(self) -> None:
        self._tools: Dict[ToolName, ToolHandler] = {}

    def register(self, tool: ToolHandler) -> None:
        """
        Register a tool handler.

        Args:
            tool: The handler instance to register. It must expose a ``name`` attribute.
        """
        self._tools[tool.name] = tool

    def get(self, name: ToolName) -> ToolHandler:
        """
        Retrieve a registered handler by name.

        Raises:
            KeyError: If no handler is registered with the given name.
        """
        return self._tools[name]

    def has(self, name: ToolName) -> bool:
        return name in self._tools

    def kind_of(self, name: ToolName) -> ToolKind:
        return ToolKind.remote if isinstance(self._tools[name], RemoteTool) else ToolKind.local

    def names(self) -> List[ToolName]:
        return list(self._tools)
