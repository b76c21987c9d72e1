"""Effective instruction assembly and memory snapshot rendering.

``PromptBuilder`` combines the template sections with a session's
``PromptConfiguration``:

1. sort sections by ``order_overrides`` falling back to their own ``order``,
2. drop disabled sections,
3. replace content with section overrides,
4. render the dynamic tools section from the enabled tools and their
   (possibly overridden) descriptions.

It also builds the bounded ``MemorySnapshot`` for an iteration and renders it
as the user-side text of the reasoning request.
"""

from __future__ import annotations

import json
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..reasoning.base import (
    ArtifactSummary,
    AttributeSummary,
    FileSummary,
    MemorySnapshot,
    PreviousResult,
)
from ..schemas.domain import AssistanceRequest, Session, SessionMemory
from ..schemas.prompt import PromptConfiguration, PromptSection, SectionEditability
from ..tools.base import ToolName, ToolResult
from ..tools.binary import render_result
from .template import DEFAULT_SECTIONS, TOOL_DESCRIPTIONS, TOOLS_SECTION_ID

logger = logging.getLogger(__name__)


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return f"{text[:limit]}\n... [truncated {len(text) - limit} chars]"


class PromptBuilder:
    def __init__(
        self,
        sections: Optional[Sequence[PromptSection]] = None,
        tool_descriptions: Optional[Dict[ToolName, str]] = None,
    ) -> None:
        self._sections: List[PromptSection] = list(sections if sections is not None else DEFAULT_SECTIONS)
        self._tool_descriptions = dict(tool_descriptions if tool_descriptions is not None else TOOL_DESCRIPTIONS)

    def template_sections(self, config: Optional[PromptConfiguration] = None) -> List[PromptSection]:
        if config is not None and config.sections:
            return list(config.sections)
        return list(self._sections)

    def section(self, section_id: str, config: Optional[PromptConfiguration] = None) -> Optional[PromptSection]:
        for section in self.template_sections(config):
            if section.id == section_id:
                return section
        return None

    def active_sections(self, config: PromptConfiguration) -> List[PromptSection]:
        disabled = set(config.disabled_sections)
        ordered = sorted(
            self.template_sections(config),
            key=lambda s: config.order_overrides.get(s.id, s.order),
        )
        active: List[PromptSection] = []
        for section in ordered:
            if section.id in disabled:
                continue
            override = config.section_overrides.get(section.id)
            if override is not None and section.editable != SectionEditability.readonly:
                section = section.model_copy(update={"content": override})
            active.append(section)
        return active

    def enabled_tools(self, config: PromptConfiguration, registered: Iterable[ToolName]) -> List[ToolName]:
        disabled = set(config.disabled_tools)
        return [t for t in registered if t.value not in disabled]

    def tool_description(self, tool: ToolName, config: PromptConfiguration) -> str:
        return config.tool_description_overrides.get(tool.value) or self._tool_descriptions.get(tool, "")

    def build_instructions(self, config: PromptConfiguration, registered: Iterable[ToolName]) -> str:
        tools = self.enabled_tools(config, registered)
        parts: List[str] = []
        for section in self.active_sections(config):
            content = section.content
            if section.id == TOOLS_SECTION_ID and section.editable == SectionEditability.dynamic:
                content = "\n".join(f"- {t.value}: {self.tool_description(t, config)}" for t in tools)
            parts.append(f"## {section.title}\n{content}")
        return "\n\n".join(parts)

    # Memory snapshot

    def build_snapshot(
        self,
        session: Session,
        memory: SessionMemory,
        *,
        blackboard_tail: int,
        scratchpad_chars: int,
        previous_result_chars: int,
        previous_results: Sequence[Tuple[str, ToolResult]] = (),
        assistance_answer: Optional[AssistanceRequest] = None,
    ) -> MemorySnapshot:
        scratchpad = memory.scratchpad
        truncated = len(scratchpad) > scratchpad_chars
        if truncated:
            # Keep the most recent part of the working document.
            scratchpad = scratchpad[-scratchpad_chars:]

        previous: List[PreviousResult] = []
        for tool, result in previous_results:
            if result.success:
                previous.append(
                    PreviousResult(
                        tool=tool,
                        success=True,
                        result=truncate(render_result(result.result), previous_result_chars),
                    )
                )
            else:
                previous.append(PreviousResult(tool=tool, success=False, error=result.error))

        return MemorySnapshot(
            prompt=session.prompt,
            files=[
                FileSummary(id=f.id, filename=f.filename, mime_type=f.mime_type, size=f.size) for f in session.files
            ],
            blackboard=list(memory.blackboard[-blackboard_tail:]),
            blackboard_total=len(memory.blackboard),
            scratchpad=scratchpad,
            scratchpad_truncated=truncated,
            attributes=[
                AttributeSummary(
                    name=a.name,
                    tool=a.tool,
                    size=a.size,
                    iteration=a.iteration,
                    is_binary=a.is_binary,
                    mime_type=a.mime_type,
                )
                for a in memory.attributes.values()
            ],
            artifacts=[ArtifactSummary(id=a.id, title=a.title, type=a.type.value) for a in memory.artifacts],
            iteration=session.current_iteration,
            max_iterations=session.max_iterations,
            remaining_iterations=max(session.max_iterations - session.current_iteration, 0),
            previous_results=previous,
            assistance_answer=assistance_answer,
        )

    def render_snapshot(self, snapshot: MemorySnapshot) -> str:
        lines: List[str] = [
            f"## Task\n{snapshot.prompt}",
            f"## Iteration\n{snapshot.iteration} of {snapshot.max_iterations} "
            f"({snapshot.remaining_iterations} remaining)",
        ]
        if snapshot.files:
            lines.append(
                "## Files\n"
                + "\n".join(f"- {f.id}: {f.filename} ({f.mime_type}, {f.size} bytes)" for f in snapshot.files)
            )
        if snapshot.assistance_answer is not None:
            answer = snapshot.assistance_answer
            reply = answer.response or answer.selected_choice or f"file {answer.file_id}"
            lines.append(f"## User Answer\nQ: {answer.question}\nA: {reply}")

        shown = len(snapshot.blackboard)
        header = f"## Blackboard (last {shown} of {snapshot.blackboard_total})"
        entries = "\n".join(
            f"[{e.category.value.upper()}] (Iteration {e.iteration}): {e.content}" for e in snapshot.blackboard
        )
        lines.append(f"{header}\n{entries or '[empty]'}")

        note = " (older content truncated)" if snapshot.scratchpad_truncated else ""
        lines.append(f"## Scratchpad{note}\n{snapshot.scratchpad or '[empty]'}")

        if snapshot.attributes:
            lines.append(
                "## Attributes (use read_attribute to fetch)\n"
                + "\n".join(
                    f"- {{{{{a.name}}}}} from {a.tool}, {a.size} chars"
                    + (f", binary {a.mime_type}" if a.is_binary else "")
                    for a in snapshot.attributes
                )
            )
        if snapshot.artifacts:
            lines.append("## Artifacts\n" + "\n".join(f"- {a.title} ({a.type}, id {a.id})" for a in snapshot.artifacts))
        if snapshot.previous_results:
            lines.append(
                "## Previous Tool Results\n"
                + json.dumps([r.model_dump(exclude_none=True) for r in snapshot.previous_results], indent=2)
            )
        return "\n\n".join(lines)
