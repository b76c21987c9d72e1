"""Prompt template, effective instruction assembly and snapshot rendering."""

from .builder import PromptBuilder
from .template import DEFAULT_SECTIONS, TOOL_DESCRIPTIONS

__all__ = ["DEFAULT_SECTIONS", "PromptBuilder", "TOOL_DESCRIPTIONS"]
