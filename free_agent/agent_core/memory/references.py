"""Reference placeholder resolution for tool parameters.

Tool parameters may embed memory references that are expanded right before a
call is executed:

- ``{{scratchpad}}``: the full scratchpad
- ``{{blackboard}}``: every blackboard entry as readable text
- ``{{attributes}}``: all attributes as a JSON object
- ``{{attribute:name}}``: the raw result of one attribute
- ``{{artifacts}}``: all artifacts as a JSON array
- ``{{artifact:id-or-title}}``: the content of one artifact

Resolution walks nested dicts and lists; non-string leaves pass through.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List

from ..schemas.domain import BlackboardEntry, SessionMemory, ToolResultAttribute

_SCRATCHPAD = re.compile(r"\{\{scratchpad\}\}", re.IGNORECASE)
_BLACKBOARD = re.compile(r"\{\{blackboard\}\}", re.IGNORECASE)
_ATTRIBUTES = re.compile(r"\{\{attributes\}\}", re.IGNORECASE)
_ATTRIBUTE = re.compile(r"\{\{attribute:([^}]+)\}\}", re.IGNORECASE)
_ARTIFACTS = re.compile(r"\{\{artifacts\}\}", re.IGNORECASE)
_ARTIFACT = re.compile(r"\{\{artifact:([^}]+)\}\}", re.IGNORECASE)

_ALL = (_SCRATCHPAD, _BLACKBOARD, _ATTRIBUTES, _ATTRIBUTE, _ARTIFACTS, _ARTIFACT)


def contains_references(value: Any) -> bool:
    if isinstance(value, str):
        return any(p.search(value) for p in _ALL)
    if isinstance(value, dict):
        return any(contains_references(v) for v in value.values())
    if isinstance(value, list):
        return any(contains_references(v) for v in value)
    return False


def format_blackboard(entries: List[BlackboardEntry]) -> str:
    if not entries:
        return "[No blackboard entries]"
    return "\n\n".join(f"[{e.category.value.upper()}] (Iteration {e.iteration}): {e.content}" for e in entries)


def _format_attributes(attributes: Dict[str, ToolResultAttribute]) -> str:
    if not attributes:
        return "{}"
    formatted = {
        name: {
            "tool": attr.tool,
            "size": attr.size,
            "createdAt": attr.created_at.isoformat(),
            "iteration": attr.iteration,
            "result": attr.result,
        }
        for name, attr in attributes.items()
    }
    return json.dumps(formatted, indent=2, default=str)


def _render_attribute(memory: SessionMemory, name: str) -> str:
    attr = memory.attributes.get(name)
    if attr is None:
        return f"[Attribute '{name}' not found]"
    if isinstance(attr.result, str):
        return attr.result
    return json.dumps(attr.result, indent=2, default=str)


def _render_artifacts(memory: SessionMemory) -> str:
    if not memory.artifacts:
        return "[]"
    return json.dumps(
        [
            {
                "id": a.id,
                "type": a.type.value,
                "title": a.title,
                "content": a.content,
                "description": a.description,
            }
            for a in memory.artifacts
        ],
        indent=2,
    )


def _render_artifact(memory: SessionMemory, key: str) -> str:
    for artifact in memory.artifacts:
        if artifact.id == key or artifact.title == key:
            return artifact.content
    return f"[Artifact '{key}' not found]"


def _resolve_string(text: str, memory: SessionMemory) -> str:
    # Replacement callables keep backslashes in memory content literal.
    text = _SCRATCHPAD.sub(lambda _m: memory.scratchpad, text)
    text = _BLACKBOARD.sub(lambda _m: format_blackboard(memory.blackboard), text)
    text = _ATTRIBUTES.sub(lambda _m: _format_attributes(memory.attributes), text)
    text = _ATTRIBUTE.sub(lambda m: _render_attribute(memory, m.group(1).strip()), text)
    text = _ARTIFACTS.sub(lambda _m: _render_artifacts(memory), text)
    text = _ARTIFACT.sub(lambda m: _render_artifact(memory, m.group(1).strip()), text)
    return text


def resolve_references(value: Any, memory: SessionMemory) -> Any:
    """Return ``value`` with every reference placeholder expanded."""
    if isinstance(value, str):
        return _resolve_string(value, memory)
    if isinstance(value, list):
        return [resolve_references(item, memory) for item in value]
    if isinstance(value, dict):
        return {key: resolve_references(item, memory) for key, item in value.items()}
    return value
