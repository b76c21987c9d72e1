"""
API Schemas.

This module contains Pydantic models used for API request bodies and response validation.
These schemas define the interface contract between the dashboard and the server.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from free_agent.agent_core.schemas.domain import AdvancedFeatures, SessionFile
from free_agent.agent_core.schemas.prompt import PromptConfiguration


class FileUpload(BaseModel):
    """An input file attached to a session."""

    filename: str = Field(..., description="Original file name.", examples=["report.csv"])
    mime_type: str = Field(default="text/plain", description="MIME type of the content.", examples=["text/csv"])
    content: str = Field(default="", description="Text content, base64 or a data URI for binary files.")
    size: Optional[int] = Field(default=None, description="Size in bytes; defaults to the content length.")

    def to_domain(self) -> SessionFile:
        return SessionFile(
            filename=self.filename,
            mime_type=self.mime_type,
            content=self.content,
            size=self.size if self.size is not None else len(self.content),
        )


class SessionStart(BaseModel):
    """
    Schema for starting a new Free Agent session.

    Defines the task prompt and the optional limits and features of the session.
    """

    prompt: str = Field(
        ...,
        min_length=1,
        description="The task the agent should accomplish.",
        examples=["Research the three most cited papers on retrieval augmented generation."],
    )
    model: Optional[str] = Field(
        default=None,
        description="Model selector handed to the reasoning collaborator. Defaults to the configured model.",
        examples=["google-gla:gemini-2.5-flash"],
    )
    max_iterations: Optional[int] = Field(default=None, ge=1, description="Iteration budget.", examples=[20])
    files: List[FileUpload] = Field(default_factory=list, description="Input files available to read_file.")
    advanced_features: Optional[AdvancedFeatures] = Field(
        default=None, description="Self-authoring and spawn switches with their limits."
    )
    prompt_configuration: Optional[PromptConfiguration] = Field(
        default=None, description="Initial prompt section and tool overrides."
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "prompt": "Summarize the attached CSV and create a short report artifact.",
                "max_iterations": 10,
                "files": [{"filename": "sales.csv", "mime_type": "text/csv", "content": "month,total\nJan,10"}],
            }
        },
    )


class SessionRestart(BaseModel):
    """Schema for starting an existing idle session again; given fields replace the stored values."""

    prompt: Optional[str] = Field(default=None, description="Replacement task prompt.")
    max_iterations: Optional[int] = Field(default=None, ge=1, description="Replacement iteration budget.")
    advanced_features: Optional[AdvancedFeatures] = Field(default=None, description="Replacement feature switches.")


class SessionContinue(BaseModel):
    """Schema for continuing a session with its accumulated memory."""

    prompt: Optional[str] = Field(default=None, description="Optional follow-up task replacing the prompt.")


class SessionRetry(BaseModel):
    """Schema for retrying a paused or failed session."""

    max_iterations: Optional[int] = Field(
        default=None, ge=1, description="New iteration budget; required after budget exhaustion."
    )


class InterjectionCreate(BaseModel):
    """A user message injected into a session's blackboard."""

    message: str = Field(..., min_length=1, description="The message to the agent.", examples=["Focus on 2024 data."])


class AssistanceAnswer(BaseModel):
    """
    Schema for answering an assistance request.

    Exactly the request that is pending can be answered; provide the fitting answer field for its input type.
    """

    request_id: str = Field(..., description="Id of the pending assistance request.")
    response: Optional[str] = Field(default=None, description="Free text answer.")
    selected_choice: Optional[str] = Field(default=None, description="One of the offered choices.")
    file_id: Optional[str] = Field(default=None, description="Id of an uploaded file.")


class ScratchpadUpdate(BaseModel):
    """Replacement scratchpad content."""

    content: str = Field(..., description="New scratchpad text.")


class ActiveTool(BaseModel):
    """A tool call that is currently executing."""

    call_id: str
    tool: str


class CacheInfo(BaseModel):
    """Size of a session's idempotent tool call cache."""

    session_id: str
    size: int


class KeepAliveEvent(BaseModel):
    """Keep-alive event for idle streams.

    Sent periodically when no events are available to prevent client timeout.
    """

    comment: str = Field(
        default="keep-alive",
        description="A fixed comment indicating this is a keep-alive message.",
        examples=["keep-alive"],
    )


class ErrorEvent(BaseModel):
    """Error event for stream failures.

    Sent when an error occurs during event streaming.
    """

    error: str = Field(..., description="The error message or error type.")
    details: Optional[str] = Field(default=None, description="Additional details or context about the error.")
