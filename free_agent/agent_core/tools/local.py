from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from ..errors import ToolValidationError
from ..orchestration.spawn import validate_spawn
from ..schemas.domain import (
    ArtifactType,
    AssistanceInputType,
    BlackboardCategory,
    FreeAgentArtifact,
    ScratchpadMode,
)
from .base import LocalTool, ToolContext, ToolName, ToolResult

_SCRATCHPAD_NOTE = (
    "Handlebar references like {{name}} are attribute placeholders. Use read_attribute({ names: ['name'] }) "
    "to fetch full data, then SUMMARIZE findings in scratchpad."
)


def _require_str(params: Dict[str, Any], key: str, tool: ToolName) -> str:
    value = params.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ToolValidationError(f"{tool.value} requires a non-empty '{key}' string")
    return value


def _enum_param(enum_cls, value: Any, key: str, tool: ToolName):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ToolValidationError(f"{tool.value}: invalid {key} '{value}' (expected one of: {allowed})") from None


@dataclass(frozen=True)
class ReadBlackboardTool(LocalTool):
    """
    Return blackboard entries, optionally filtered by category.

    Params:
        - filter (str, optional): a blackboard category.
    """

    name: ToolName = ToolName.read_blackboard

    async def execute(self, ctx: ToolContext, *, params: Dict[str, Any]) -> ToolResult:
        entries = ctx.memory.memory.blackboard
        if params.get("filter"):
            category = _enum_param(BlackboardCategory, params["filter"], "filter", self.name)
            entries = [e for e in entries if e.category == category]
        return ToolResult.ok(
            [
                {
                    "id": e.id,
                    "timestamp": e.timestamp.isoformat(),
                    "iteration": e.iteration,
                    "category": e.category.value,
                    "content": e.content,
                    "data": e.data,
                }
                for e in entries
            ]
        )


@dataclass(frozen=True)
class WriteBlackboardTool(LocalTool):
    """
    Append one blackboard entry.

    Params:
        - category (str): a blackboard category.
        - content (str): entry text.
        - data (dict, optional): structured payload.
    """

    name: ToolName = ToolName.write_blackboard

    async def execute(self, ctx: ToolContext, *, params: Dict[str, Any]) -> ToolResult:
        category = _enum_param(BlackboardCategory, params.get("category", "observation"), "category", self.name)
        content = _require_str(params, "content", self.name)
        data = params.get("data")
        if data is not None and not isinstance(data, dict):
            raise ToolValidationError("write_blackboard 'data' must be an object")
        entry = ctx.memory.append_blackboard(category, content, data)
        return ToolResult.ok({"id": entry.id, "timestamp": entry.timestamp.isoformat(), "success": True})


@dataclass(frozen=True)
class ReadScratchpadTool(LocalTool):
    """Return the scratchpad verbatim with the attribute index. Placeholders are not expanded."""

    name: ToolName = ToolName.read_scratchpad

    async def execute(self, ctx: ToolContext, *, params: Dict[str, Any]) -> ToolResult:
        memory = ctx.memory.memory
        return ToolResult.ok(
            {
                "content": memory.scratchpad,
                "note": _SCRATCHPAD_NOTE,
                "available_attributes": [
                    {"name": a.name, "tool": a.tool, "size": a.size} for a in memory.attributes.values()
                ],
            }
        )


@dataclass(frozen=True)
class WriteScratchpadTool(LocalTool):
    """
    Write the scratchpad.

    Params:
        - content (str): text to write.
        - mode (str, optional): ``append`` (default, joined with a blank line) or ``replace``.
    """

    name: ToolName = ToolName.write_scratchpad

    async def execute(self, ctx: ToolContext, *, params: Dict[str, Any]) -> ToolResult:
        content = params.get("content")
        if not isinstance(content, str):
            raise ToolValidationError("write_scratchpad requires a 'content' string")
        mode = _enum_param(ScratchpadMode, params.get("mode") or "append", "mode", self.name)
        updated = ctx.memory.write_scratchpad(content, mode)
        return ToolResult.ok({"success": True, "length": len(updated)})


@dataclass(frozen=True)
class ReadPromptTool(LocalTool):
    name: ToolName = ToolName.read_prompt

    async def execute(self, ctx: ToolContext, *, params: Dict[str, Any]) -> ToolResult:
        return ToolResult.ok(ctx.session.prompt)


@dataclass(frozen=True)
class ReadPromptFilesTool(LocalTool):
    name: ToolName = ToolName.read_prompt_files

    async def execute(self, ctx: ToolContext, *, params: Dict[str, Any]) -> ToolResult:
        return ToolResult.ok(
            [{"id": f.id, "filename": f.filename, "mimeType": f.mime_type, "size": f.size} for f in ctx.session.files]
        )


@dataclass(frozen=True)
class ReadFileTool(LocalTool):
    """
    Return one uploaded file.

    Params:
        - fileId (str): id of a file attached to the session.
    """

    name: ToolName = ToolName.read_file

    async def execute(self, ctx: ToolContext, *, params: Dict[str, Any]) -> ToolResult:
        file_id = params.get("fileId") or params.get("file_id")
        if not file_id:
            raise ToolValidationError("read_file requires 'fileId'")
        for f in ctx.session.files:
            if f.id == file_id:
                return ToolResult.ok(
                    {"filename": f.filename, "content": f.content, "mimeType": f.mime_type, "size": f.size}
                )
        return ToolResult.fail(f"File not found: {file_id}")


@dataclass(frozen=True)
class ReadAttributeTool(LocalTool):
    """
    Read saved tool result attributes.

    Without ``names`` only metadata is returned, so the agent cannot pull every
    payload into its context by accident.

    Params:
        - names (list[str] | str, optional): attribute names to fetch in full.
    """

    name: ToolName = ToolName.read_attribute

    async def execute(self, ctx: ToolContext, *, params: Dict[str, Any]) -> ToolResult:
        attributes = ctx.memory.memory.attributes
        names = params.get("names") or []
        if isinstance(names, str):
            names = [names]
        if not isinstance(names, list):
            raise ToolValidationError("read_attribute 'names' must be a list of attribute names")

        if not names:
            metadata = [
                {
                    "name": a.name,
                    "tool": a.tool,
                    "size": a.size,
                    "iteration": a.iteration,
                    "isBinary": a.is_binary,
                    "mimeType": a.mime_type,
                    "createdAt": a.created_at.isoformat(),
                }
                for a in attributes.values()
            ]
            return ToolResult.ok({"attributes": metadata, "count": len(metadata)})

        results: Dict[str, Any] = {}
        for name in names:
            attr = attributes.get(str(name))
            results[str(name)] = attr.result if attr is not None else f"Attribute '{name}' not found"
        return ToolResult.ok(results)


@dataclass(frozen=True)
class RequestAssistanceTool(LocalTool):
    """
    Ask the user a question; the session pauses in ``needs_assistance``.

    Params:
        - question (str)
        - context (str, optional)
        - inputType (str, optional): text, choice or file.
        - choices (list[str], optional): required for ``choice``.
    """

    name: ToolName = ToolName.request_assistance

    async def execute(self, ctx: ToolContext, *, params: Dict[str, Any]) -> ToolResult:
        input_type = _enum_param(AssistanceInputType, params.get("inputType") or "text", "inputType", self.name)
        choices = params.get("choices")
        if choices is not None and not isinstance(choices, list):
            raise ToolValidationError("request_assistance 'choices' must be a list")
        request = ctx.interrupts.request(
            str(params.get("question") or ""),
            context=params.get("context"),
            input_type=input_type,
            choices=[str(c) for c in choices or []],
        )
        return ToolResult.ok({"awaiting_response": True, "request_id": request.id})


@dataclass(frozen=True)
class CreateArtifactTool(LocalTool):
    """
    Create a durable artifact for the user.

    Params:
        - title (str)
        - content (str): text, base64 or a data URI.
        - type (str, optional): text, file, image, data or audio.
        - mimeType (str, optional)
        - description (str, optional)
    """

    name: ToolName = ToolName.create_artifact

    async def execute(self, ctx: ToolContext, *, params: Dict[str, Any]) -> ToolResult:
        title = _require_str(params, "title", self.name)
        content = params.get("content")
        if not isinstance(content, str):
            raise ToolValidationError("create_artifact requires a 'content' string")
        artifact_type = _enum_param(ArtifactType, params.get("type") or "text", "type", self.name)
        artifact = ctx.memory.add_artifact(
            FreeAgentArtifact(
                type=artifact_type,
                title=title,
                content=content,
                mime_type=params.get("mimeType"),
                size=len(content),
                description=params.get("description"),
                iteration=ctx.memory.iteration,
            )
        )
        return ToolResult.ok({"artifactId": artifact.id, "title": artifact.title, "size": artifact.size})


@dataclass(frozen=True)
class ReadSelfTool(LocalTool):
    name: ToolName = ToolName.read_self

    async def execute(self, ctx: ToolContext, *, params: Dict[str, Any]) -> ToolResult:
        return ToolResult.ok(ctx.gate.read_self(str(params.get("include") or "all")))


@dataclass(frozen=True)
class WriteSelfTool(LocalTool):
    name: ToolName = ToolName.write_self

    async def execute(self, ctx: ToolContext, *, params: Dict[str, Any]) -> ToolResult:
        return ToolResult.ok(ctx.gate.write_self(params))


@dataclass(frozen=True)
class SpawnTool(LocalTool):
    """
    Request child agents. The request is carried out at the end of the iteration.

    Params:
        - children (list): ``{name, task, maxIterations?}`` objects.
        - completionThreshold (int, optional): children that must finish before resuming (default all).
    """

    name: ToolName = ToolName.spawn

    async def execute(self, ctx: ToolContext, *, params: Dict[str, Any]) -> ToolResult:
        request = validate_spawn(params, ctx.session)
        ctx.spawn_slot.claim(request)
        names = [c.name for c in request.children]
        return ToolResult.ok(
            {
                "spawned": len(names),
                "childNames": names,
                "completionThreshold": request.completion_threshold,
                "message": (
                    f"Spawned {len(names)} child agent(s): {', '.join(names)}. "
                    "Execution will pause until children complete."
                ),
            }
        )


def builtin_local_tools() -> List[LocalTool]:
    return [
        ReadBlackboardTool(),
        WriteBlackboardTool(),
        ReadScratchpadTool(),
        WriteScratchpadTool(),
        ReadPromptTool(),
        ReadPromptFilesTool(),
        ReadFileTool(),
        ReadAttributeTool(),
        RequestAssistanceTool(),
        CreateArtifactTool(),
        ReadSelfTool(),
        WriteSelfTool(),
        SpawnTool(),
    ]
