from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import Field

from .base import BaseSchema, FrozenSchema
from .prompt import PromptConfiguration, SelfAuthoringEdit


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


class SessionStatus(str, Enum):
    idle = "idle"
    running = "running"
    completed = "completed"
    error = "error"
    paused = "paused"
    needs_assistance = "needs_assistance"
    waiting = "waiting"


TERMINAL_STATUSES = frozenset({SessionStatus.completed, SessionStatus.error})


class ErrorReason(str, Enum):
    parse_retries_exhausted = "parse_retries_exhausted"
    budget_exhausted = "budget_exhausted"
    declared_failure = "declared_failure"
    internal = "internal"


class BlackboardCategory(str, Enum):
    observation = "observation"
    insight = "insight"
    question = "question"
    decision = "decision"
    plan = "plan"
    artifact = "artifact"
    error = "error"
    user_interjection = "user_interjection"
    user_response = "user_response"


class ArtifactType(str, Enum):
    text = "text"
    file = "file"
    image = "image"
    data = "data"
    audio = "audio"


class ToolCallStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    error = "error"


class AssistanceInputType(str, Enum):
    text = "text"
    choice = "choice"
    file = "file"


class SessionRole(str, Enum):
    standalone = "standalone"
    orchestrator = "orchestrator"
    child = "child"


class ScratchpadMode(str, Enum):
    append = "append"
    replace = "replace"


class SessionEventType(str, Enum):
    session_started = "session.started"
    session_stopped = "session.stopped"
    session_reset = "session.reset"
    status_changed = "session.status_changed"
    iteration_started = "iteration.started"
    iteration_completed = "iteration.completed"
    parse_failed = "iteration.parse_failed"
    tool_started = "tool.started"
    tool_completed = "tool.completed"
    scratchpad_updated = "memory.scratchpad_updated"
    assistance_requested = "assistance.requested"
    assistance_resolved = "assistance.resolved"
    interjection_received = "interjection.received"
    self_authoring_applied = "self_authoring.applied"
    children_spawned = "spawn.children_started"
    child_settled = "spawn.child_settled"
    parent_resumed = "spawn.parent_resumed"


# ---------------------------------------------------------------------------
# Memory records
# ---------------------------------------------------------------------------


class BlackboardEntry(FrozenSchema):
    id: str = Field(default_factory=_new_id)
    timestamp: datetime = Field(default_factory=_utc_now)
    iteration: int = 0
    category: BlackboardCategory
    content: str
    data: Optional[Dict[str, Any]] = None


class ToolResultAttribute(FrozenSchema):
    id: str = Field(default_factory=_new_id)
    name: str
    tool: str
    params: Dict[str, Any] = Field(default_factory=dict)
    iteration: int
    size: int
    is_binary: bool = False
    mime_type: Optional[str] = None
    result: Any = None
    result_string: str
    created_at: datetime = Field(default_factory=_utc_now)


class FreeAgentArtifact(FrozenSchema):
    id: str = Field(default_factory=_new_id)
    type: ArtifactType = ArtifactType.text
    title: str
    content: str
    mime_type: Optional[str] = None
    size: Optional[int] = None
    description: Optional[str] = None
    iteration: int = 0
    created_at: datetime = Field(default_factory=_utc_now)


class SessionMemory(BaseSchema):
    """The four memory collections of one session.

    ``attributes`` preserves insertion order; ``attribute_counter`` backs the
    ``result_N`` auto names so they never repeat within a session.
    """

    blackboard: List[BlackboardEntry] = Field(default_factory=list)
    scratchpad: str = ""
    attributes: Dict[str, ToolResultAttribute] = Field(default_factory=dict)
    artifacts: List[FreeAgentArtifact] = Field(default_factory=list)
    attribute_counter: int = 0


# ---------------------------------------------------------------------------
# Audit records
# ---------------------------------------------------------------------------


class ToolCallRecord(FrozenSchema):
    id: str = Field(default_factory=_new_id)
    tool: str
    params: Dict[str, Any] = Field(default_factory=dict)
    status: ToolCallStatus = ToolCallStatus.pending
    result: Any = None
    error: Optional[str] = None
    iteration: int
    cached: bool = False
    started_at: datetime = Field(default_factory=_utc_now)
    ended_at: Optional[datetime] = None


class ParseErrorDetail(BaseSchema):
    message: str
    response_length: int = 0
    preview: str = ""
    ending: str = ""


class RawIterationInput(BaseSchema):
    effective_prompt: str
    model: str
    scratchpad_length: int
    blackboard_entries: int
    attribute_count: int
    previous_results_count: int


class RawIterationOutput(BaseSchema):
    raw_response: Optional[str] = None
    parsed: Optional[Dict[str, Any]] = None
    parse_error: Optional[ParseErrorDetail] = None
    error_message: Optional[str] = None


class RawIterationData(BaseSchema):
    iteration: int
    timestamp: datetime = Field(default_factory=_utc_now)
    input: RawIterationInput
    output: RawIterationOutput = Field(default_factory=RawIterationOutput)
    tool_calls: List[ToolCallRecord] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Session aggregate
# ---------------------------------------------------------------------------


class SessionFile(BaseSchema):
    id: str = Field(default_factory=_new_id)
    filename: str
    mime_type: str = "text/plain"
    size: int = 0
    content: str = ""
    uploaded_at: datetime = Field(default_factory=_utc_now)


class AssistanceRequest(BaseSchema):
    id: str = Field(default_factory=_new_id)
    question: str
    context: Optional[str] = None
    input_type: AssistanceInputType = AssistanceInputType.text
    choices: List[str] = Field(default_factory=list)
    requested_at: datetime = Field(default_factory=_utc_now)

    response: Optional[str] = None
    selected_choice: Optional[str] = None
    file_id: Optional[str] = None
    responded_at: Optional[datetime] = None

    @property
    def resolved(self) -> bool:
        return self.responded_at is not None


class ArtifactReference(BaseSchema):
    title: str
    description: Optional[str] = None
    artifact_id: Optional[str] = None


class FinalReport(BaseSchema):
    summary: str
    tools_used: List[str] = Field(default_factory=list)
    artifacts_created: List[ArtifactReference] = Field(default_factory=list)
    key_findings: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    total_iterations: int = 0
    total_tool_calls: int = 0
    total_time_ms: int = 0


class ChildSession(BaseSchema):
    """Reference from an orchestrator to one of its children in the session arena."""

    session_id: str
    name: str
    task: str
    max_iterations: int
    merged: bool = False


class Orchestration(BaseSchema):
    role: SessionRole = SessionRole.standalone
    parent_id: Optional[str] = None
    children: List[ChildSession] = Field(default_factory=list)
    # Child ids of the most recent spawn; the completion threshold counts only these.
    current_batch: List[str] = Field(default_factory=list)
    completion_threshold: Optional[int] = None
    resumed: bool = False


class AdvancedFeatures(BaseSchema):
    self_author_enabled: bool = False
    spawn_enabled: bool = False
    max_children: int = Field(default=5, ge=1)
    child_max_iterations: int = Field(default=20, ge=1)


class Session(BaseSchema):
    id: str = Field(default_factory=_new_id)
    status: SessionStatus = SessionStatus.idle

    current_iteration: int = 0
    max_iterations: int = Field(default=50, ge=1)

    model: str
    prompt: str
    files: List[SessionFile] = Field(default_factory=list)

    memory: SessionMemory = Field(default_factory=SessionMemory)
    tool_calls: List[ToolCallRecord] = Field(default_factory=list)
    raw_iterations: List[RawIterationData] = Field(default_factory=list)

    retry_count: int = 0
    last_error_iteration: Optional[int] = None
    error_message: Optional[str] = None
    error_reason: Optional[ErrorReason] = None

    pending_assistance: Optional[AssistanceRequest] = None
    final_report: Optional[FinalReport] = None

    orchestration: Orchestration = Field(default_factory=Orchestration)
    advanced_features: AdvancedFeatures = Field(default_factory=AdvancedFeatures)
    prompt_configuration: PromptConfiguration = Field(default_factory=PromptConfiguration)
    pending_prompt_edits: List[SelfAuthoringEdit] = Field(default_factory=list)

    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    last_activity: Optional[datetime] = None

    @property
    def is_child(self) -> bool:
        return self.orchestration.role == SessionRole.child


class SessionEvent(BaseSchema):
    id: str = Field(default_factory=_new_id)
    session_id: str

    type: SessionEventType
    created_at: datetime = Field(default_factory=_utc_now)

    payload: Dict[str, Any] = Field(default_factory=dict)
