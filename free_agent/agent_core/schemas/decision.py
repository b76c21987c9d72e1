"""Structured decision returned by the reasoning collaborator.

These models are deliberately lenient (unknown keys are ignored) because they
validate model-generated JSON. Everything else in the package uses the strict
``BaseSchema``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .domain import BlackboardCategory


class DecisionStatus(str, Enum):
    in_progress = "in_progress"
    completed = "completed"
    needs_assistance = "needs_assistance"
    error = "error"


class _DecisionModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ToolCallRequest(_DecisionModel):
    tool: str
    params: Dict[str, Any] = Field(default_factory=dict)


class DecisionBlackboardEntry(_DecisionModel):
    category: BlackboardCategory = BlackboardCategory.observation
    content: str
    data: Optional[Dict[str, Any]] = None

    @field_validator("category", mode="before")
    @classmethod
    def _fallback_category(cls, value: Any) -> Any:
        if isinstance(value, str) and value not in BlackboardCategory._value2member_map_:
            return BlackboardCategory.observation
        return value


class DecisionArtifactReference(_DecisionModel):
    title: str
    description: Optional[str] = None


class DecisionFinalReport(_DecisionModel):
    summary: str = ""
    tools_used: List[str] = Field(default_factory=list)
    artifacts_created: List[DecisionArtifactReference] = Field(default_factory=list)
    key_findings: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class AgentDecision(_DecisionModel):
    reasoning: str = ""
    tool_calls: List[ToolCallRequest] = Field(default_factory=list)
    blackboard_entry: Optional[DecisionBlackboardEntry] = None
    status: DecisionStatus = DecisionStatus.in_progress
    message_to_user: Optional[str] = None
    final_report: Optional[DecisionFinalReport] = None
