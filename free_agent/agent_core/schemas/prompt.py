"""Prompt configuration models.

The effective instructions sent to the reasoning collaborator are assembled
from ordered ``PromptSection`` objects. A session's ``PromptConfiguration``
records the customizations layered on top of the template, and
``SelfAuthoringEdit`` is the queued change produced by the ``write_self`` tool.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List

from pydantic import Field

from .base import BaseSchema


class SectionEditability(str, Enum):
    readonly = "readonly"
    editable = "editable"
    dynamic = "dynamic"


class PromptSection(BaseSchema):
    id: str
    title: str
    type: str = "text"
    content: str
    order: int
    editable: SectionEditability = SectionEditability.editable


class PromptConfiguration(BaseSchema):
    """Customizations applied on top of the prompt template.

    An empty ``sections`` list means "use the built-in template sections".
    """

    sections: List[PromptSection] = Field(default_factory=list)
    section_overrides: Dict[str, str] = Field(default_factory=dict)
    disabled_sections: List[str] = Field(default_factory=list)
    order_overrides: Dict[str, int] = Field(default_factory=dict)
    tool_description_overrides: Dict[str, str] = Field(default_factory=dict)
    disabled_tools: List[str] = Field(default_factory=list)


class SelfAuthoringEdit(BaseSchema):
    """A validated, queued change to the agent's own prompt configuration."""

    section_overrides: Dict[str, str] = Field(default_factory=dict, alias="sectionOverrides")
    disable_sections: List[str] = Field(default_factory=list, alias="disableSections")
    enable_sections: List[str] = Field(default_factory=list, alias="enableSections")
    order_overrides: Dict[str, int] = Field(default_factory=dict, alias="orderOverrides")
    tool_description_overrides: Dict[str, str] = Field(default_factory=dict, alias="toolDescriptionOverrides")
    disable_tools: List[str] = Field(default_factory=list, alias="disableTools")
    enable_tools: List[str] = Field(default_factory=list, alias="enableTools")

    def describe(self) -> List[str]:
        """Human readable list of the changes this edit carries."""
        changes: List[str] = []
        for section_id, content in self.section_overrides.items():
            changes.append(f"Override section '{section_id}' ({len(content)} chars)")
        changes.extend(f"Disable section: {s}" for s in self.disable_sections)
        changes.extend(f"Enable section: {s}" for s in self.enable_sections)
        changes.extend(f"Move section '{s}' to position {o}" for s, o in self.order_overrides.items())
        changes.extend(f"Override tool description: {t}" for t in self.tool_description_overrides)
        changes.extend(f"Disable tool: {t}" for t in self.disable_tools)
        changes.extend(f"Enable tool: {t}" for t in self.enable_tools)
        return changes
