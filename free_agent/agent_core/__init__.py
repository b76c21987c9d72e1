"""Free Agent session orchestration and tool-dispatch engine.

Design overview
---------------

A session is an autonomous loop: every iteration the engine asks a reasoning
collaborator for a decision given a bounded snapshot of the session's memory,
runs the requested tools concurrently, folds their results back into memory
and picks the next status.

- ``memory``: the committed store (blackboard, scratchpad, attributes,
  artifacts) with all-or-nothing transactions.
- ``tools``: the closed ``ToolName`` enum, local and remote handlers, the
  dispatcher with its attribute policy and the idempotent-call cache.
- ``runtime``: the LangGraph iteration loop (``FreeAgentEngine``), per-session
  runtime bundles and the event bus.
- ``orchestration``: spawning child sessions and reconciling their results.
- ``control``: assistance requests, interjections and the self-authoring gate.

Typical usage
-------------

Most applications should use ``agent_core.service.FreeAgentService`` (built
by ``agent_core.factory.build_service``):

1. ``start`` a session with a prompt.
2. Observe it through projections or by subscribing to its events.
3. Answer assistance requests, interject, retry or reset as needed.
"""

from .errors import (
    AssistanceResolutionError,
    FreeAgentError,
    InvalidTransitionError,
    SessionNotFoundError,
    ToolValidationError,
)
from .schemas.domain import (
    AdvancedFeatures,
    BlackboardCategory,
    ErrorReason,
    Session,
    SessionEvent,
    SessionEventType,
    SessionFile,
    SessionStatus,
)
from .tools.base import ToolName, ToolResult

__all__ = [
    "AdvancedFeatures",
    "AssistanceResolutionError",
    "BlackboardCategory",
    "ErrorReason",
    "FreeAgentError",
    "InvalidTransitionError",
    "Session",
    "SessionEvent",
    "SessionEventType",
    "SessionFile",
    "SessionNotFoundError",
    "SessionStatus",
    "ToolName",
    "ToolResult",
    "ToolValidationError",
]
