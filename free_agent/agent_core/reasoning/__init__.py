"""Reasoning collaborator boundary, decision parsing and the pydantic-ai adapter."""

from .base import (
    MemorySnapshot,
    PreviousResult,
    ReasoningCollaborator,
    ReasoningRequest,
    ReasoningResponse,
)
from .parser import parse_decision

__all__ = [
    "MemorySnapshot",
    "PreviousResult",
    "ReasoningCollaborator",
    "ReasoningRequest",
    "ReasoningResponse",
    "parse_decision",
]
