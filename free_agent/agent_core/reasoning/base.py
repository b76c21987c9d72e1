from __future__ import annotations

"""Reasoning collaborator boundary.

The iteration loop does not decide anything itself. Each iteration it sends a
``ReasoningRequest`` (effective instructions plus a bounded ``MemorySnapshot``)
to a ``ReasoningCollaborator`` and receives a ``ReasoningResponse`` carrying
either a parsed ``AgentDecision`` or a parse failure.

Collaborators should:

- never raise for malformed model output (return ``parse_error`` instead),
- keep the raw text in ``raw_response`` for the audit trail.

Exceptions that do escape are treated by the loop like parse failures.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from pydantic import Field

from ..errors import DecisionParseError
from ..schemas.base import BaseSchema
from ..schemas.decision import AgentDecision
from ..schemas.domain import AssistanceRequest, BlackboardEntry, ParseErrorDetail


class AttributeSummary(BaseSchema):
    name: str
    tool: str
    size: int
    iteration: int
    is_binary: bool = False
    mime_type: Optional[str] = None


class FileSummary(BaseSchema):
    id: str
    filename: str
    mime_type: str
    size: int


class ArtifactSummary(BaseSchema):
    id: str
    title: str
    type: str


class PreviousResult(BaseSchema):
    tool: str
    success: bool
    result: Optional[str] = None
    error: Optional[str] = None


class MemorySnapshot(BaseSchema):
    """Bounded view of session memory sent with every reasoning request."""

    prompt: str
    files: List[FileSummary] = Field(default_factory=list)
    blackboard: List[BlackboardEntry] = Field(default_factory=list)
    blackboard_total: int = 0
    scratchpad: str = ""
    scratchpad_truncated: bool = False
    attributes: List[AttributeSummary] = Field(default_factory=list)
    artifacts: List[ArtifactSummary] = Field(default_factory=list)
    iteration: int
    max_iterations: int
    remaining_iterations: int
    previous_results: List[PreviousResult] = Field(default_factory=list)
    assistance_answer: Optional[AssistanceRequest] = None


class ReasoningRequest(BaseSchema):
    session_id: str
    model: str
    instructions: str
    snapshot: MemorySnapshot
    rendered_input: str = ""

    @property
    def effective_prompt(self) -> str:
        return f"{self.instructions}\n\n{self.rendered_input}"


@dataclass(frozen=True)
class ReasoningResponse:
    decision: Optional[AgentDecision] = None
    raw_response: str = ""
    parse_error: Optional[ParseErrorDetail] = None

    @property
    def ok(self) -> bool:
        return self.decision is not None

    @classmethod
    def from_text(cls, raw: str) -> "ReasoningResponse":
        """Parse model text into a response, capturing failures."""
        from .parser import parse_decision

        try:
            return cls(decision=parse_decision(raw), raw_response=raw)
        except DecisionParseError as exc:
            return cls(raw_response=raw, parse_error=ParseErrorDetail(**exc.detail()))

    def parsed_payload(self) -> Optional[Dict[str, Any]]:
        return self.decision.model_dump(mode="json") if self.decision is not None else None


class ReasoningCollaborator(Protocol):
    """Protocol for reasoning implementations."""

    async def decide(self, request: ReasoningRequest) -> ReasoningResponse: ...
