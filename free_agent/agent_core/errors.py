"""Error types for the Free Agent engine.

Command-surface misuse (unknown sessions, illegal transitions, bad assistance
resolutions) raises these exceptions to the caller. Validation failures inside
tool handlers also use them, but the dispatcher converts them into
``ToolResult(success=False)`` envelopes so an iteration never aborts.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class FreeAgentError(Exception):
    """Base error for all Free Agent exceptions."""


class SessionNotFoundError(FreeAgentError):
    """Raised when a command targets a session id the arena does not hold."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found: '{session_id}'")


class InvalidTransitionError(FreeAgentError):
    """Raised when a command is not allowed from the session's current status."""

    def __init__(self, command: str, status: str, detail: Optional[str] = None) -> None:
        self.command = command
        self.status = status
        message = f"Cannot '{command}' a session in status '{status}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class AssistanceResolutionError(FreeAgentError):
    """Raised when an assistance resolution does not match the pending request."""

    def __init__(self, request_id: str, reason: str) -> None:
        self.request_id = request_id
        super().__init__(f"Cannot resolve assistance request '{request_id}': {reason}")


class ToolValidationError(FreeAgentError):
    """Raised by tool handlers for rejected parameters or disallowed calls."""


class FeatureDisabledError(ToolValidationError):
    """Raised when a tool needs an advanced feature the session has not enabled."""

    def __init__(self, feature: str, tool: str) -> None:
        self.feature = feature
        super().__init__(f"{feature} feature is not enabled. Enable it before using {tool}.")


class SpawnValidationError(ToolValidationError):
    """Raised for malformed or disallowed spawn requests."""


class SelfAuthoringValidationError(ToolValidationError):
    """Raised for invalid ``write_self`` edits."""


class DuplicateAttributeError(FreeAgentError):
    """Raised when an attribute name is already taken in a session's memory."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Attribute '{name}' already exists")


class DecisionParseError(FreeAgentError):
    """Raised when a reasoning response cannot be turned into a decision."""

    def __init__(self, message: str, raw_response: str = "") -> None:
        self.raw_response = raw_response
        super().__init__(message)

    def detail(self) -> Dict[str, Any]:
        raw = self.raw_response or ""
        return {
            "message": str(self),
            "response_length": len(raw),
            "preview": raw[:500],
            "ending": raw[-200:] if len(raw) > 200 else raw,
        }
