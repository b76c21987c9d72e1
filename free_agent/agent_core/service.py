from __future__ import annotations

"""Command surface and read-only projections for Free Agent sessions.

``FreeAgentService`` is what an application (the HTTP server, a CLI, tests)
talks to. It owns nothing the engine does not already own; it validates that
a command is legal for the session's current status, performs the
transition, and (re)launches the iteration loop through the engine.

Commands
--------

- ``start``: create a session (or restart an idle one, keeping its memory)
  and launch its loop.
- ``stop``: cancel the loop, status ``idle``, memory preserved.
- ``reset``: cancel the loop and its children, clear memory and the tool
  cache, status ``idle``.
- ``continue_session``: cancel the loop, keep memory and cache, clear the
  audit trail and counters, status ``idle``.
- ``retry``: re-launch a ``paused`` or ``error`` session.
- ``interject``: append a user message to the blackboard; a running loop
  re-executes its current iteration.
- ``respond_to_assistance``: resolve the pending assistance request by id and
  resume the loop.
- ``update_scratchpad``: replace the scratchpad from outside the loop.

Misuse raises ``SessionNotFoundError``, ``InvalidTransitionError`` or
``AssistanceResolutionError`` and leaves the session untouched.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from .errors import InvalidTransitionError
from .memory.export import export_memory
from .runtime.engine import FreeAgentEngine
from .runtime.models import SessionRuntime
from .schemas.domain import (
    TERMINAL_STATUSES,
    AdvancedFeatures,
    BlackboardCategory,
    ErrorReason,
    Orchestration,
    ScratchpadMode,
    Session,
    SessionEvent,
    SessionEventType,
    SessionFile,
    SessionMemory,
    SessionRole,
    SessionStatus,
)
from .schemas.prompt import PromptConfiguration

logger = logging.getLogger(__name__)

_STOPPABLE = frozenset(
    {SessionStatus.running, SessionStatus.paused, SessionStatus.needs_assistance, SessionStatus.waiting}
)


class FreeAgentService:
    """Validate and apply session commands on top of a ``FreeAgentEngine``."""

    def __init__(self, engine: FreeAgentEngine) -> None:
        self.engine = engine

    @property
    def arena(self):
        return self.engine.arena

    def _runtime(self, session_id: str) -> SessionRuntime:
        return self.engine.arena.get(session_id)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def start(
        self,
        prompt: Optional[str] = None,
        *,
        session_id: Optional[str] = None,
        model: Optional[str] = None,
        files: Sequence[SessionFile] = (),
        max_iterations: Optional[int] = None,
        advanced_features: Optional[AdvancedFeatures] = None,
        prompt_configuration: Optional[PromptConfiguration] = None,
    ) -> Session:
        """Create and launch a session, or relaunch an idle one.

        An existing session keeps its memory; ``prompt``, ``files``,
        ``max_iterations`` and ``advanced_features`` replace the stored values
        when given.
        """
        if session_id is not None:
            rt = self._runtime(session_id)
            session = rt.session
            if session.status != SessionStatus.idle:
                raise InvalidTransitionError("start", session.status.value, "stop, reset or continue it first")
            if prompt:
                session.prompt = prompt
            if files:
                session.files = list(files)
            if max_iterations is not None:
                session.max_iterations = max_iterations
            if advanced_features is not None:
                session.advanced_features = advanced_features
            if prompt_configuration is not None:
                session.prompt_configuration = prompt_configuration
        else:
            if not prompt or not prompt.strip():
                raise InvalidTransitionError("start", SessionStatus.idle.value, "a non-empty prompt is required")
            config = self.engine.config
            session = Session(
                model=model or config.default_model,
                prompt=prompt,
                files=list(files),
                max_iterations=max_iterations or config.max_iterations,
                advanced_features=advanced_features
                or AdvancedFeatures(max_children=config.max_children, child_max_iterations=config.child_max_iterations),
                prompt_configuration=prompt_configuration or PromptConfiguration(),
            )
            rt = self.engine.create_runtime(session)

        await self.engine.events.emit(
            session.id,
            SessionEventType.session_started,
            {"model": session.model, "max_iterations": session.max_iterations, "iteration": session.current_iteration},
        )
        logger.info(f"Starting session {session.id} (model {session.model}, budget {session.max_iterations})")
        self.engine.launch(rt)
        return session

    async def stop(self, session_id: str) -> Session:
        rt = self._runtime(session_id)
        session = rt.session
        if session.status not in _STOPPABLE:
            raise InvalidTransitionError("stop", session.status.value)

        self._detach_children(session)
        await self.engine.cancel(rt)
        for child in self.engine.arena.children_of(session_id):
            if child.session.status not in TERMINAL_STATUSES:
                await self.engine.cancel(child)
                child.interrupts.clear()
                child.session.status = SessionStatus.idle
        rt.interrupts.clear()
        rt.spawn_slot.take()
        session.status = SessionStatus.idle
        await self.engine.events.emit(
            session_id, SessionEventType.session_stopped, {"iteration": session.current_iteration}
        )
        logger.info(f"Stopped session {session_id} at iteration {session.current_iteration}")
        return session

    async def reset(self, session_id: str) -> Session:
        """Return the session to a fresh ``idle`` state; memory, cache and children are discarded."""
        rt = self._runtime(session_id)
        session = rt.session
        self._detach_children(session)
        await self.engine.cancel(rt)
        await self._discard_children(session_id)

        await rt.store.replace(SessionMemory())
        rt.cache.clear()
        rt.interrupts.clear()
        rt.spawn_slot.take()
        rt.active_tools.clear()
        rt.previous_results = []

        session.tool_calls = []
        session.raw_iterations = []
        session.pending_prompt_edits = []
        session.final_report = None
        session.start_time = None
        session.end_time = None
        self._clear_progress(session)

        await self.engine.events.emit(session_id, SessionEventType.session_reset, {})
        logger.info(f"Reset session {session_id}")
        return session

    async def continue_session(self, session_id: str, *, prompt: Optional[str] = None) -> Session:
        """Return the session to ``idle`` keeping memory and the tool cache.

        The audit trail and counters are cleared so a following ``start``
        begins at iteration 1 with the accumulated knowledge.
        """
        rt = self._runtime(session_id)
        session = rt.session
        self._detach_children(session)
        await self.engine.cancel(rt)
        await self._discard_children(session_id)

        rt.interrupts.clear()
        rt.spawn_slot.take()
        rt.active_tools.clear()
        rt.previous_results = []
        session.tool_calls = []
        session.raw_iterations = []
        session.final_report = None
        session.end_time = None
        if prompt:
            session.prompt = prompt
        self._clear_progress(session)

        await self.engine.events.emit(
            session_id, SessionEventType.status_changed, {"status": SessionStatus.idle.value, "continued": True}
        )
        logger.info(f"Continuing session {session_id} with {len(rt.store.committed.blackboard)} blackboard entries")
        return session

    async def retry(self, session_id: str, *, max_iterations: Optional[int] = None) -> Session:
        """Re-launch a ``paused`` or ``error`` session.

        A manual retry from ``paused`` keeps the parse retry counter so the
        bound still applies. After ``parse_retries_exhausted`` the counter
        starts again from zero. After ``budget_exhausted`` the budget must be
        raised (``max_iterations``) first.
        """
        rt = self._runtime(session_id)
        session = rt.session
        if session.status not in (SessionStatus.paused, SessionStatus.error):
            raise InvalidTransitionError("retry", session.status.value)

        if max_iterations is not None:
            if max_iterations < 1:
                raise InvalidTransitionError("retry", session.status.value, "max_iterations must be at least 1")
            session.max_iterations = max_iterations
        if session.error_reason == ErrorReason.budget_exhausted and session.current_iteration >= session.max_iterations:
            raise InvalidTransitionError(
                "retry",
                session.status.value,
                f"iteration budget exhausted ({session.current_iteration}/{session.max_iterations}); "
                "raise max_iterations or continue the session",
            )
        if session.error_reason == ErrorReason.parse_retries_exhausted:
            session.retry_count = 0

        session.error_message = None
        session.error_reason = None
        session.end_time = None
        logger.info(f"Retrying session {session_id} from iteration {session.current_iteration + 1}")
        self.engine.launch(rt)
        return session

    async def interject(self, session_id: str, message: str) -> Session:
        rt = self._runtime(session_id)
        session = rt.session
        if session.status in TERMINAL_STATUSES:
            raise InvalidTransitionError("interject", session.status.value)
        if not message or not message.strip():
            raise InvalidTransitionError("interject", session.status.value, "message must not be empty")

        async with rt.store.transaction() as memory:
            entry = memory.append_blackboard(BlackboardCategory.user_interjection, message)
        await self.engine.events.emit(
            session_id, SessionEventType.interjection_received, {"entry_id": entry.id, "iteration": entry.iteration}
        )
        if session.status == SessionStatus.running:
            rt.interrupts.signal_interjection()
        logger.info(f"Interjection for session {session_id} at iteration {session.current_iteration}")
        return session

    async def respond_to_assistance(
        self,
        session_id: str,
        request_id: str,
        *,
        response: Optional[str] = None,
        selected_choice: Optional[str] = None,
        file_id: Optional[str] = None,
    ) -> Session:
        rt = self._runtime(session_id)
        session = rt.session
        resolved = rt.interrupts.resolve(
            request_id, response=response, selected_choice=selected_choice, file_id=file_id
        )

        answer = response if response is not None else selected_choice
        if answer is None:
            answer = f"file {file_id}"
        async with rt.store.transaction() as memory:
            memory.append_blackboard(
                BlackboardCategory.user_response,
                f"User response to '{resolved.question}': {answer}",
                {
                    "request_id": resolved.id,
                    "response": response,
                    "selected_choice": selected_choice,
                    "file_id": file_id,
                },
            )
        await self.engine.events.emit(session_id, SessionEventType.assistance_resolved, {"request_id": resolved.id})

        if session.status == SessionStatus.needs_assistance:
            self.engine.launch(rt)
        return session

    async def update_scratchpad(self, session_id: str, content: str) -> Session:
        rt = self._runtime(session_id)
        async with rt.store.transaction() as memory:
            updated = memory.write_scratchpad(content, ScratchpadMode.replace)
        await self.engine.events.emit(
            session_id, SessionEventType.scratchpad_updated, {"length": len(updated), "source": "user"}
        )
        return rt.session

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------

    def snapshot(self, session_id: str) -> Session:
        """Deep copy of the session aggregate, safe to serialize while the loop runs."""
        return self._runtime(session_id).session.model_copy(deep=True)

    def list_sessions(self, *, include_children: bool = False) -> List[Session]:
        arena = self.engine.arena
        runtimes = arena.all() if include_children else arena.roots()
        return [rt.session.model_copy(deep=True) for rt in runtimes]

    def children(self, session_id: str) -> List[Session]:
        self._runtime(session_id)
        return [rt.session.model_copy(deep=True) for rt in self.engine.arena.children_of(session_id)]

    def active_tools(self, session_id: str) -> List[Dict[str, Any]]:
        rt = self._runtime(session_id)
        return [{"call_id": call_id, "tool": tool} for call_id, tool in rt.active_tools.items()]

    def cache_size(self, session_id: str) -> int:
        return self._runtime(session_id).cache.size

    async def events(self, session_id: str, *, limit: int = 100, offset: int = 0) -> List[SessionEvent]:
        self._runtime(session_id)
        return await self.engine.events.history(session_id, limit=limit, offset=offset)

    def export_memory(self, session_id: str) -> str:
        return export_memory(self._runtime(session_id).store.committed)

    # ------------------------------------------------------------------
    # Subscriptions and lifecycle
    # ------------------------------------------------------------------

    def subscribe(self, session_id: str) -> "asyncio.Queue[SessionEvent]":
        self._runtime(session_id)
        return self.engine.events.subscribe(session_id)

    def unsubscribe(self, session_id: str, queue: "asyncio.Queue[SessionEvent]") -> None:
        self.engine.events.unsubscribe(session_id, queue)

    async def wait(self, session_id: str, *, timeout: Optional[float] = None, poll_interval: float = 0.01) -> Session:
        """Wait until the session is at rest: no loop task and not waiting on children."""
        rt = self._runtime(session_id)

        async def _settle() -> None:
            while True:
                task = rt.task
                if task is not None and not task.done():
                    await asyncio.wait([task])
                    continue
                if rt.session.status != SessionStatus.waiting:
                    return
                await asyncio.sleep(poll_interval)

        await asyncio.wait_for(_settle(), timeout)
        return rt.session

    async def shutdown(self) -> None:
        """Cancel every loop task in the arena."""
        arena = self.engine.arena
        for rt in arena.all():
            await self.engine.cancel(rt)
        logger.info(f"Service shut down; {len(arena)} session(s) in arena")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _discard_children(self, session_id: str) -> None:
        for child in self.engine.arena.children_of(session_id):
            await self._discard_children(child.id)
            await self.engine.cancel(child)
            self.engine.arena.remove(child.id)

    @staticmethod
    def _detach_children(session: Session) -> None:
        """Stop pending children from resuming the session once a command takes it over."""
        orchestration = session.orchestration
        if orchestration.current_batch and not orchestration.resumed:
            session.orchestration = orchestration.model_copy(update={"resumed": True})
        if session.status == SessionStatus.waiting:
            session.status = SessionStatus.idle

    @staticmethod
    def _clear_progress(session: Session) -> None:
        if session.is_child:
            session.orchestration = Orchestration(role=SessionRole.child, parent_id=session.orchestration.parent_id)
        else:
            session.orchestration = Orchestration()
        session.status = SessionStatus.idle
        session.current_iteration = 0
        session.retry_count = 0
        session.last_error_iteration = None
        session.error_message = None
        session.error_reason = None
        session.pending_assistance = None
