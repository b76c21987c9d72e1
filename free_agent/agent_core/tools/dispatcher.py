"""Tool dispatcher.

``ToolDispatcher.execute`` is the single entry point for running one tool
call on behalf of a session. For every call it:

1. resolves the requested name (``base:instance`` suffixes allowed) through
   the registry; unknown names fail the call,
2. refuses tools disabled in the session's prompt configuration,
3. expands memory references in params of remote tools and ``create_artifact``,
4. executes the handler: local handlers inside their own memory transaction,
   remote handlers through the session cache when the tool is idempotent,
5. applies the attribute policy to eligible results: binary, oversized or
   ``saveAs`` results are stored once as a ``ToolResultAttribute`` and the
   caller receives a short summary with the ``{{name}}`` placeholder.

Nothing here raises for a failed call. Validation errors, handler exceptions
and transport failures all come back as ``ToolResult(success=False)``. Task
cancellation is the only thing that propagates.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Dict, Optional

from ..errors import FreeAgentError
from ..memory.references import contains_references, resolve_references
from ..schemas.domain import ScratchpadMode, ToolResultAttribute
from .base import (
    ATTRIBUTE_ELIGIBLE_TOOLS,
    CACHEABLE_TOOLS,
    REFERENCE_RESOLVING_TOOLS,
    LocalTool,
    ToolContext,
    ToolName,
    ToolResult,
    resolve_tool_name,
)
from .binary import detect_binary, render_result
from .cache import cache_key
from .registry import ToolRegistry
from .remote import RemoteTool

if TYPE_CHECKING:
    from ..runtime.models import SessionRuntime

logger = logging.getLogger(__name__)


class ToolDispatcher:
    """Resolve, execute and post-process tool calls for session runtimes.

    Attributes:
        registry: Static name to handler table
        attribute_threshold: Rendered result length above which eligible
            results are stored as attributes
    """

    def __init__(self, registry: ToolRegistry, *, attribute_threshold: int = 8000) -> None:
        self.registry = registry
        self.attribute_threshold = attribute_threshold

    async def execute(self, tool_name: str, params: Optional[Dict[str, Any]], runtime: "SessionRuntime") -> ToolResult:
        tool = resolve_tool_name(tool_name)
        if tool is None or not self.registry.has(tool):
            return ToolResult.fail(f"Unknown tool: {tool_name}")

        session = runtime.session
        if tool.value in session.prompt_configuration.disabled_tools:
            return ToolResult.fail(f"Tool '{tool.value}' is disabled in this session's configuration")

        call_params = dict(params or {})
        save_as = call_params.pop("saveAs", None) if tool in ATTRIBUTE_ELIGIBLE_TOOLS else None
        if tool in REFERENCE_RESOLVING_TOOLS and contains_references(call_params):
            call_params = resolve_references(call_params, runtime.store.committed)

        handler = self.registry.get(tool)
        try:
            if isinstance(handler, RemoteTool):
                result = await self._run_remote(tool, handler, call_params, runtime)
            else:
                result = await self._run_local(handler, call_params, runtime)
        except FreeAgentError as exc:
            logger.debug(f"Tool {tool_name} rejected for session {session.id}: {exc}")
            return ToolResult.fail(str(exc))
        except Exception as exc:
            logger.warning(f"Tool {tool_name} failed for session {session.id}: {exc!r}", exc_info=True)
            return ToolResult.fail(f"{type(exc).__name__}: {exc}")

        if result.success and tool in ATTRIBUTE_ELIGIBLE_TOOLS:
            result = await self._apply_attribute_policy(tool, call_params, result, save_as, runtime)
        return result

    async def _run_remote(
        self, tool: ToolName, handler: RemoteTool, params: Dict[str, Any], runtime: "SessionRuntime"
    ) -> ToolResult:
        if tool not in CACHEABLE_TOOLS:
            return await handler.invoke(params)
        result, cached = await runtime.cache.get_or_run(cache_key(tool, params), lambda: handler.invoke(params))
        return replace(result, cached=True) if cached else result

    async def _run_local(self, handler: LocalTool, params: Dict[str, Any], runtime: "SessionRuntime") -> ToolResult:
        async with runtime.store.transaction() as writer:
            ctx = ToolContext(
                session=runtime.session,
                memory=writer,
                interrupts=runtime.interrupts,
                gate=runtime.gate,
                spawn_slot=runtime.spawn_slot,
            )
            return await handler.execute(ctx, params=params)

    async def _apply_attribute_policy(
        self,
        tool: ToolName,
        params: Dict[str, Any],
        result: ToolResult,
        save_as: Any,
        runtime: "SessionRuntime",
    ) -> ToolResult:
        binary = detect_binary(tool, result.result)
        rendered = render_result(result.result)
        oversized = len(rendered) > self.attribute_threshold
        if binary is None and not oversized and not save_as:
            return result

        async with runtime.store.transaction() as writer:
            name = writer.unique_attribute_name(str(save_as)) if save_as else writer.next_attribute_name()
            attribute = writer.add_attribute(
                ToolResultAttribute(
                    name=name,
                    tool=tool.value,
                    params=params,
                    iteration=writer.iteration,
                    size=binary.size if binary else len(rendered),
                    is_binary=binary is not None,
                    mime_type=binary.mime_type if binary else None,
                    result=result.result,
                    result_string=binary.summary if binary else rendered,
                )
            )
            writer.write_scratchpad(f"## {name} (from {tool.value})\n{{{{{name}}}}}", ScratchpadMode.append)

        description = binary.summary if binary else f"{attribute.size} chars"
        logger.info(f"Session {runtime.id}: {tool.value} result stored as attribute '{name}' ({description})")
        return ToolResult(
            success=True,
            result={
                "_savedAsAttribute": name,
                "placeholder": f"{{{{{name}}}}}",
                "size": attribute.size,
                "isBinary": attribute.is_binary,
                "mimeType": attribute.mime_type,
                "_message": (
                    f"Result saved as attribute '{name}' ({description}). "
                    f"Use read_attribute({{ names: ['{name}'] }}) to access it."
                ),
            },
            cached=result.cached,
        )
