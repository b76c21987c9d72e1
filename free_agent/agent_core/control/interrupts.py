"""Human-in-the-loop control for one session.

Two channels reach a running session from the outside:

- assistance: agent-initiated and blocking. At most one ``AssistanceRequest``
  is outstanding; it is resolved exactly once by its id.
- interjection: user-initiated and non-blocking. The iteration loop watches
  the interjection signal while it waits on the reasoning collaborator and
  re-runs the current iteration when it fires.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional

from ..errors import AssistanceResolutionError, ToolValidationError
from ..schemas.domain import AssistanceInputType, AssistanceRequest, Session

logger = logging.getLogger(__name__)


class InterruptController:
    def __init__(self, session: Session) -> None:
        self._session = session
        self._interjection = asyncio.Event()
        self.last_resolved: Optional[AssistanceRequest] = None

    @property
    def pending(self) -> Optional[AssistanceRequest]:
        return self._session.pending_assistance

    def request(
        self,
        question: str,
        *,
        context: Optional[str] = None,
        input_type: AssistanceInputType = AssistanceInputType.text,
        choices: Optional[List[str]] = None,
    ) -> AssistanceRequest:
        if self._session.pending_assistance is not None:
            raise ToolValidationError(
                f"An assistance request is already pending ({self._session.pending_assistance.id}); "
                "wait for the user to answer it"
            )
        if not question or not question.strip():
            raise ToolValidationError("request_assistance requires a non-empty 'question'")
        if input_type == AssistanceInputType.choice and not choices:
            raise ToolValidationError("request_assistance with inputType 'choice' requires 'choices'")

        request = AssistanceRequest(
            question=question,
            context=context,
            input_type=input_type,
            choices=list(choices or []),
        )
        self._session.pending_assistance = request
        logger.info(f"Session {self._session.id} requested assistance: {request.id}")
        return request

    def resolve(
        self,
        request_id: str,
        *,
        response: Optional[str] = None,
        selected_choice: Optional[str] = None,
        file_id: Optional[str] = None,
    ) -> AssistanceRequest:
        """Resolve the pending request. Leaves the session untouched on failure."""
        pending = self._session.pending_assistance
        if pending is None:
            raise AssistanceResolutionError(request_id, "no assistance request is pending")
        if pending.id != request_id:
            raise AssistanceResolutionError(request_id, "id does not match the pending request")
        if response is None and selected_choice is None and file_id is None:
            raise AssistanceResolutionError(request_id, "an answer (response, selected_choice or file_id) is required")
        if selected_choice is not None and pending.choices and selected_choice not in pending.choices:
            raise AssistanceResolutionError(request_id, f"'{selected_choice}' is not one of the offered choices")

        resolved = pending.model_copy(
            update={
                "response": response,
                "selected_choice": selected_choice,
                "file_id": file_id,
                "responded_at": datetime.now(timezone.utc),
            }
        )
        self._session.pending_assistance = None
        self.last_resolved = resolved
        logger.info(f"Session {self._session.id} assistance request {request_id} resolved")
        return resolved

    def take_answer(self) -> Optional[AssistanceRequest]:
        """Hand the last resolved request to the next reasoning input, once."""
        answer, self.last_resolved = self.last_resolved, None
        return answer

    def clear(self) -> None:
        self._session.pending_assistance = None
        self.last_resolved = None
        self._interjection.clear()

    # Interjection signal

    def signal_interjection(self) -> None:
        self._interjection.set()

    def consume_interjection(self) -> bool:
        fired = self._interjection.is_set()
        self._interjection.clear()
        return fired

    async def wait_interjection(self) -> None:
        await self._interjection.wait()
