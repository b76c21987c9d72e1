"""Self-authoring gate.

``read_self`` and ``write_self`` let the agent inspect and change its own
prompt configuration at runtime, but only when the session enables the
feature. Writes are validated immediately and queued on the session; they
are applied by ``apply_pending`` at the start of the next iteration, so the
decision that asked for a change is never affected by it.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List

from pydantic import ValidationError

from ..errors import FeatureDisabledError, SelfAuthoringValidationError
from ..prompting.builder import PromptBuilder
from ..schemas.domain import Session
from ..schemas.prompt import SectionEditability, SelfAuthoringEdit
from ..tools.base import ToolName

logger = logging.getLogger(__name__)

_FEATURE = "Self-Author"

_EDIT_KEYS = (
    "sectionOverrides, disableSections, enableSections, orderOverrides, "
    "toolDescriptionOverrides, disableTools, enableTools"
)


class SelfAuthoringGate:
    def __init__(self, session: Session, builder: PromptBuilder, tools: Iterable[ToolName]) -> None:
        self._session = session
        self._builder = builder
        self._tools = frozenset(t.value for t in tools)

    def _require_enabled(self, tool: str) -> None:
        if not self._session.advanced_features.self_author_enabled:
            raise FeatureDisabledError(_FEATURE, tool)

    def read_self(self, include: str = "all") -> Dict[str, Any]:
        self._require_enabled(ToolName.read_self.value)
        if include not in ("all", "sections", "tools"):
            raise SelfAuthoringValidationError(f"Unknown include value '{include}'; use all, sections or tools")

        config = self._session.prompt_configuration
        result: Dict[str, Any] = {}
        if include in ("all", "sections"):
            result["sections"] = [
                {
                    "id": s.id,
                    "title": s.title,
                    "editable": s.editable.value,
                    "order": config.order_overrides.get(s.id, s.order),
                    "enabled": s.id not in config.disabled_sections,
                    "overridden": s.id in config.section_overrides,
                    "content": config.section_overrides.get(s.id, s.content),
                }
                for s in self._builder.template_sections(config)
            ]
        if include in ("all", "tools"):
            result["tools"] = {
                "descriptionOverrides": dict(config.tool_description_overrides),
                "disabledTools": list(config.disabled_tools),
            }
        result["pendingEdits"] = len(self._session.pending_prompt_edits)
        result["usage"] = "Use write_self to modify your configuration. Changes take effect next iteration."
        return result

    def _validate(self, edit: SelfAuthoringEdit) -> None:
        config = self._session.prompt_configuration
        sections = {s.id: s for s in self._builder.template_sections(config)}

        referenced = (
            set(edit.section_overrides)
            | set(edit.disable_sections)
            | set(edit.enable_sections)
            | set(edit.order_overrides)
        )
        unknown = sorted(referenced - set(sections))
        if unknown:
            raise SelfAuthoringValidationError(f"Unknown section id(s): {', '.join(unknown)}")

        locked = sorted(
            sid
            for sid in set(edit.section_overrides) | set(edit.disable_sections)
            if sections[sid].editable == SectionEditability.readonly
        )
        if locked:
            raise SelfAuthoringValidationError(f"Readonly section(s) cannot be changed: {', '.join(locked)}")

        both = sorted(set(edit.disable_sections) & set(edit.enable_sections))
        if both:
            raise SelfAuthoringValidationError(f"Section(s) both enabled and disabled: {', '.join(both)}")

        tools = set(edit.tool_description_overrides) | set(edit.disable_tools) | set(edit.enable_tools)
        unknown_tools = sorted(tools - self._tools)
        if unknown_tools:
            raise SelfAuthoringValidationError(f"Unknown tool(s): {', '.join(unknown_tools)}")

    def write_self(self, params: Dict[str, Any]) -> Dict[str, Any]:
        self._require_enabled(ToolName.write_self.value)
        try:
            edit = SelfAuthoringEdit.model_validate(params)
        except ValidationError as exc:
            raise SelfAuthoringValidationError(f"Invalid write_self parameters: {exc.errors()[0]['msg']}") from exc

        changes = edit.describe()
        if not changes:
            raise SelfAuthoringValidationError(f"No changes specified. Provide at least one of: {_EDIT_KEYS}")
        self._validate(edit)

        self._session.pending_prompt_edits.append(edit)
        logger.info(f"Session {self._session.id} queued self-authoring edit: {len(changes)} change(s)")
        return {
            "changesApplied": changes,
            "note": "Changes queued for next iteration. The prompt configuration will be updated.",
        }

    def apply_pending(self) -> List[SelfAuthoringEdit]:
        """Fold queued edits into the prompt configuration. Called at iteration boundaries."""
        edits = list(self._session.pending_prompt_edits)
        if not edits:
            return []

        config = self._session.prompt_configuration.model_copy(deep=True)
        for edit in edits:
            config.section_overrides.update(edit.section_overrides)
            config.order_overrides.update(edit.order_overrides)
            config.tool_description_overrides.update(edit.tool_description_overrides)
            config.disabled_sections = [
                s for s in config.disabled_sections if s not in edit.enable_sections
            ] + [s for s in edit.disable_sections if s not in config.disabled_sections]
            config.disabled_tools = [t for t in config.disabled_tools if t not in edit.enable_tools] + [
                t for t in edit.disable_tools if t not in config.disabled_tools
            ]

        self._session.prompt_configuration = config
        self._session.pending_prompt_edits = []
        logger.info(f"Session {self._session.id} applied {len(edits)} self-authoring edit(s)")
        return edits
