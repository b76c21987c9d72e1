from __future__ import annotations

"""LangGraph iteration loop.

``FreeAgentEngine`` drives one session from ``running`` to its next resting
status (``completed``, ``error``, ``paused``, ``needs_assistance`` or
``waiting``).

Execution model
---------------

- Each iteration is one pass through a small LangGraph state machine over a
  ``_LoopState``: ``reason`` -> ``dispatch`` -> ``evaluate``.
- ``run`` invokes the graph repeatedly while the last node asks to continue;
  every pass ends at ``END`` so the graph never needs a recursion budget.

Reason
------

1. Apply queued self-authoring edits (the iteration boundary).
2. Refuse to start past the iteration budget.
3. Send instructions plus a bounded memory snapshot to the reasoning
   collaborator, racing it against the interjection signal. An interjection
   abandons the request and re-runs the same iteration number.
4. Record the exchange in ``RawIterationData``. A parse failure rolls the
   iteration counter back and pauses, retries, or fails the session once the
   retry bound is reached.

Dispatch
--------

All tool calls of the decision run concurrently through the
``ToolDispatcher`` and are folded back in completion order. A failing call
never affects its siblings. The decision's own blackboard entry is appended
afterwards.

Evaluate
--------

Picks the next status: pending spawn, assistance, completion, declared
failure, interjection re-run, budget exhaustion, or another iteration.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set, Tuple

from langgraph.graph import END, StateGraph

from ..control.interrupts import InterruptController
from ..control.self_authoring import SelfAuthoringGate
from ..memory.store import MemoryStore
from ..orchestration.spawn import SpawnCoordinator
from ..prompting.builder import PromptBuilder
from ..reasoning.base import ReasoningCollaborator, ReasoningRequest, ReasoningResponse
from ..repos.memory import InMemoryEventRepository, SessionArena
from ..schemas.decision import AgentDecision, DecisionFinalReport, DecisionStatus
from ..schemas.domain import (
    TERMINAL_STATUSES,
    ArtifactReference,
    ErrorReason,
    FinalReport,
    ParseErrorDetail,
    RawIterationData,
    RawIterationInput,
    RawIterationOutput,
    Session,
    SessionEventType,
    SessionStatus,
    ToolCallRecord,
    ToolCallStatus,
)
from ..tools.base import ToolResult
from ..tools.cache import ToolCallCache
from ..tools.dispatcher import ToolDispatcher
from ..tools.registry import ToolRegistry
from .events import EventBus
from .models import EngineConfig, SessionRuntime, _LoopState

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FreeAgentEngine:
    """Run session iteration loops and own the per-session runtimes.

    The engine holds no session state of its own: everything lives in the
    ``SessionArena`` as ``SessionRuntime`` bundles. It delegates decisions to
    the reasoning collaborator and all tool work to the ``ToolDispatcher``.
    """

    def __init__(
        self,
        *,
        registry: ToolRegistry,
        reasoner: ReasoningCollaborator,
        config: Optional[EngineConfig] = None,
        builder: Optional[PromptBuilder] = None,
        arena: Optional[SessionArena] = None,
        events: Optional[EventBus] = None,
    ) -> None:
        """
        Initialize the FreeAgentEngine.

        Args:
            registry: Tool handlers available to every session.
            reasoner: Collaborator that turns a memory snapshot into a decision.
            config: Loop tunables; defaults apply when omitted.
            builder: Prompt builder for instructions and snapshots.
            arena: Index of live session runtimes shared with the service layer.
            events: Event bus that records and fans out session events.
        """
        self.config = config or EngineConfig()
        self.registry = registry
        self.builder = builder or PromptBuilder()
        self.arena = arena if arena is not None else SessionArena()
        self.events = events or EventBus(InMemoryEventRepository())
        self.dispatcher = ToolDispatcher(registry, attribute_threshold=self.config.attribute_threshold_chars)
        self.spawner = SpawnCoordinator(
            self.arena,
            create_runtime=self.create_runtime,
            launch=self.launch,
            emit=self._emit,
        )
        self._reasoner = reasoner
        self._graph = self._build_graph()

    def _build_graph(self):
        """Build and compile the per-iteration LangGraph state machine."""
        g: StateGraph = StateGraph(_LoopState)
        g.add_node("reason", self._node_reason)
        g.add_node("dispatch", self._node_dispatch)
        g.add_node("evaluate", self._node_evaluate)

        g.set_entry_point("reason")
        g.add_conditional_edges(
            "reason",
            self._route_after_reason,
            {
                "dispatch": "dispatch",
                "end": END,
            },
        )
        g.add_edge("dispatch", "evaluate")
        g.add_edge("evaluate", END)
        return g.compile()

    # ------------------------------------------------------------------
    # Runtime lifecycle
    # ------------------------------------------------------------------

    def create_runtime(self, session: Session) -> SessionRuntime:
        """Bundle ``session`` with its in-process handles and add it to the arena."""
        runtime = SessionRuntime(
            session=session,
            store=MemoryStore(session),
            cache=ToolCallCache(ttl=self.config.tool_cache_ttl_seconds),
            interrupts=InterruptController(session),
            gate=SelfAuthoringGate(session, self.builder, self.registry.names()),
        )
        self.arena.add(runtime)
        return runtime

    def launch(self, rt: SessionRuntime) -> "asyncio.Task[None]":
        """Mark the session running and start its loop task.

        The status changes before this returns, so callers never observe a
        launched session in its previous status. A loop task that is still
        unwinding is awaited by the new task before it starts iterating.
        """
        previous = rt.task
        now = _utc_now()
        rt.session.status = SessionStatus.running
        rt.session.last_activity = now
        if rt.session.start_time is None:
            rt.session.start_time = now
        rt.task = asyncio.create_task(self._run_after(previous, rt), name=f"free-agent-{rt.id}")
        return rt.task

    async def _run_after(self, previous: Optional["asyncio.Task[None]"], rt: SessionRuntime) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        await self.run(rt)

    async def cancel(self, rt: SessionRuntime) -> None:
        """Cancel the session's loop task and wait until it has unwound."""
        task = rt.task
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.wait([task])
        logger.info(f"Session {rt.id} loop cancelled at iteration {rt.session.current_iteration}")

    async def run(self, rt: SessionRuntime) -> None:
        """Iterate until the session leaves ``running``.

        Unexpected exceptions move the session to ``error`` with reason
        ``internal``. Cancellation propagates to the caller.
        """
        session = rt.session
        await self._emit(rt.id, SessionEventType.status_changed, {"status": SessionStatus.running.value})
        logger.info(f"Session {rt.id} running from iteration {session.current_iteration}/{session.max_iterations}")
        try:
            while session.status == SessionStatus.running:
                state = await self._graph.ainvoke({"session_id": rt.id})
                if state.get("next") != "continue":
                    break
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error(f"Session {rt.id} loop failed: {exc}", exc_info=True)
            await self._fail(rt, ErrorReason.internal, f"{type(exc).__name__}: {exc}")

        if session.is_child and session.status in TERMINAL_STATUSES:
            await self.spawner.child_settled(rt)

    # ------------------------------------------------------------------
    # Graph nodes
    # ------------------------------------------------------------------

    async def _node_reason(self, state: _LoopState) -> _LoopState:
        """Request one decision from the reasoning collaborator."""
        rt = self.arena.get(state["session_id"])
        session = rt.session
        state["decision"] = None

        applied = rt.gate.apply_pending()
        if applied:
            await self._emit(
                rt.id,
                SessionEventType.self_authoring_applied,
                {"edits": len(applied), "changes": [c for edit in applied for c in edit.describe()]},
            )

        if session.current_iteration >= session.max_iterations:
            await self._fail(
                rt, ErrorReason.budget_exhausted, f"Reached maximum iterations ({session.max_iterations})"
            )
            state["next"] = "halt"
            return state

        # Anything interjected before the snapshot is built is already on the blackboard.
        rt.interrupts.consume_interjection()
        rt.spawn_slot.take()

        session.current_iteration += 1
        session.last_activity = _utc_now()
        iteration = session.current_iteration
        await self._emit(rt.id, SessionEventType.iteration_started, {"iteration": iteration})

        memory = rt.store.committed
        snapshot = self.builder.build_snapshot(
            session,
            memory,
            blackboard_tail=self.config.blackboard_tail,
            scratchpad_chars=self.config.scratchpad_snapshot_chars,
            previous_result_chars=self.config.previous_result_chars,
            previous_results=rt.previous_results,
            assistance_answer=rt.interrupts.last_resolved,
        )
        request = ReasoningRequest(
            session_id=rt.id,
            model=session.model,
            instructions=self.builder.build_instructions(session.prompt_configuration, self.registry.names()),
            snapshot=snapshot,
            rendered_input=self.builder.render_snapshot(snapshot),
        )

        response = await self._decide(rt, request)
        if response is None:
            session.current_iteration -= 1
            logger.info(f"Session {rt.id} iteration {iteration} interrupted by interjection, re-running")
            state["next"] = "continue"
            return state

        session.raw_iterations.append(
            RawIterationData(
                iteration=iteration,
                input=RawIterationInput(
                    effective_prompt=request.effective_prompt,
                    model=session.model,
                    scratchpad_length=len(memory.scratchpad),
                    blackboard_entries=len(memory.blackboard),
                    attribute_count=len(memory.attributes),
                    previous_results_count=len(rt.previous_results),
                ),
                output=RawIterationOutput(
                    raw_response=response.raw_response,
                    parsed=response.parsed_payload(),
                    parse_error=response.parse_error,
                    error_message=response.parse_error.message if response.parse_error else None,
                ),
            )
        )

        if not response.ok:
            return await self._handle_parse_failure(rt, state, response)

        session.retry_count = 0
        rt.interrupts.take_answer()
        state["decision"] = response.decision
        state["next"] = "dispatch"
        return state

    async def _decide(self, rt: SessionRuntime, request: ReasoningRequest) -> Optional[ReasoningResponse]:
        """Await the collaborator unless an interjection arrives first (then None)."""
        decide = asyncio.ensure_future(self._reasoner.decide(request))
        interjected = asyncio.ensure_future(rt.interrupts.wait_interjection())
        try:
            done, _ = await asyncio.wait({decide, interjected}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for pending in (decide, interjected):
                if not pending.done():
                    pending.cancel()

        if decide not in done:
            rt.interrupts.consume_interjection()
            return None
        try:
            return decide.result()
        except Exception as exc:
            logger.warning(f"Reasoning collaborator failed for session {rt.id}: {exc!r}")
            return ReasoningResponse(parse_error=ParseErrorDetail(message=f"{type(exc).__name__}: {exc}"))

    async def _handle_parse_failure(
        self, rt: SessionRuntime, state: _LoopState, response: ReasoningResponse
    ) -> _LoopState:
        session = rt.session
        iteration = session.current_iteration
        message = response.parse_error.message if response.parse_error else "Unparseable response"

        session.retry_count += 1
        session.current_iteration -= 1
        await self._emit(
            rt.id,
            SessionEventType.parse_failed,
            {"iteration": iteration, "retry_count": session.retry_count, "message": message},
        )

        limit = self.config.parse_retry_limit
        if session.retry_count >= limit:
            await self._fail(
                rt,
                ErrorReason.parse_retries_exhausted,
                f"Failed to parse agent response after {session.retry_count} attempts: {message}",
                iteration=iteration,
            )
            state["next"] = "halt"
        elif self.config.auto_retry_parse_failures or session.is_child:
            logger.info(
                f"Session {rt.id} re-running iteration {iteration} after parse failure {session.retry_count}/{limit}"
            )
            state["next"] = "continue"
        else:
            session.last_error_iteration = iteration
            session.error_message = message
            await self._set_status(rt, SessionStatus.paused)
            state["next"] = "halt"
        return state

    async def _node_dispatch(self, state: _LoopState) -> _LoopState:
        """Run the decision's tool calls concurrently and fold them back in completion order."""
        rt = self.arena.get(state["session_id"])
        session = rt.session
        decision = state.get("decision")
        iteration = session.current_iteration
        scratchpad_before = rt.store.committed.scratchpad

        records: List[ToolCallRecord] = []
        results: List[Tuple[str, ToolResult]] = []
        tasks: Dict["asyncio.Task[ToolResult]", ToolCallRecord] = {}
        folded: Set["asyncio.Task[ToolResult]"] = set()
        try:
            for call in decision.tool_calls if decision else []:
                record = ToolCallRecord(tool=call.tool, params=call.params, iteration=iteration)
                session.tool_calls.append(record)
                rt.active_tools[record.id] = call.tool
                tasks[asyncio.create_task(self.dispatcher.execute(call.tool, call.params, rt))] = record
                await self._emit(
                    rt.id,
                    SessionEventType.tool_started,
                    {"call_id": record.id, "tool": call.tool, "iteration": iteration},
                )

            remaining = set(tasks)
            while remaining:
                done, remaining = await asyncio.wait(remaining, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    folded.add(task)
                    record = tasks[task]
                    result = task.result()
                    finished = self._finish_record(rt, record, result)
                    records.append(finished)
                    results.append((record.tool, result))
                    await self._emit(
                        rt.id,
                        SessionEventType.tool_completed,
                        {
                            "call_id": record.id,
                            "tool": record.tool,
                            "success": result.success,
                            "cached": result.cached,
                            "error": result.error,
                        },
                    )
        finally:
            # Only reached with unfolded tasks when the loop itself is cancelled.
            for task, record in tasks.items():
                if task in folded:
                    continue
                if task.done() and not task.cancelled():
                    self._finish_record(rt, record, task.result())
                else:
                    task.cancel()
                    self._finish_record(rt, record, ToolResult.fail("Cancelled"))

        rt.previous_results = results
        if session.raw_iterations and session.raw_iterations[-1].iteration == iteration:
            session.raw_iterations[-1].tool_calls = records

        entry = decision.blackboard_entry if decision else None
        if entry is not None:
            async with rt.store.transaction() as memory:
                memory.append_blackboard(entry.category, entry.content, entry.data)

        scratchpad = rt.store.committed.scratchpad
        if scratchpad != scratchpad_before:
            await self._emit(rt.id, SessionEventType.scratchpad_updated, {"length": len(scratchpad)})

        logger.debug(
            f"Session {rt.id} iteration {iteration}: {len(records)} tool call(s), "
            f"{sum(1 for r in records if r.status == ToolCallStatus.error)} failed"
        )
        state["next"] = "evaluate"
        return state

    def _finish_record(self, rt: SessionRuntime, record: ToolCallRecord, result: ToolResult) -> ToolCallRecord:
        finished = record.model_copy(
            update={
                "status": ToolCallStatus.completed if result.success else ToolCallStatus.error,
                "result": result.result,
                "error": result.error,
                "cached": result.cached,
                "ended_at": _utc_now(),
            }
        )
        calls = rt.session.tool_calls
        for index in range(len(calls) - 1, -1, -1):
            if calls[index].id == record.id:
                calls[index] = finished
                break
        rt.active_tools.pop(record.id, None)
        return finished

    async def _node_evaluate(self, state: _LoopState) -> _LoopState:
        """Choose the session's next status after an iteration's tools have settled."""
        rt = self.arena.get(state["session_id"])
        session = rt.session
        decision = state.get("decision") or AgentDecision()
        iteration = session.current_iteration
        await self._emit(
            rt.id,
            SessionEventType.iteration_completed,
            {"iteration": iteration, "status": decision.status.value, "tool_calls": len(decision.tool_calls)},
        )
        state["next"] = "halt"

        spawn = rt.spawn_slot.take()
        if spawn is not None:
            await self._set_status(rt, SessionStatus.waiting)
            await self.spawner.start(rt, spawn)
            return state

        if session.pending_assistance is not None or decision.status == DecisionStatus.needs_assistance:
            if session.pending_assistance is None:
                rt.interrupts.request(decision.message_to_user or "The agent needs your input to continue.")
            request = session.pending_assistance
            # The same iteration number is re-run once the request is resolved.
            session.current_iteration -= 1
            await self._set_status(rt, SessionStatus.needs_assistance)
            await self._emit(rt.id, SessionEventType.assistance_requested, request.model_dump(mode="json"))
            return state

        if decision.status == DecisionStatus.completed:
            session.final_report = self._final_report(rt, decision)
            session.end_time = _utc_now()
            await self._set_status(rt, SessionStatus.completed)
            return state

        if decision.status == DecisionStatus.error:
            await self._fail(
                rt,
                ErrorReason.declared_failure,
                decision.message_to_user or decision.reasoning or "The agent reported an error",
            )
            return state

        if rt.interrupts.consume_interjection():
            session.current_iteration -= 1
            logger.info(f"Session {rt.id} re-running iteration {iteration} after interjection")
            state["next"] = "continue"
            return state

        if session.current_iteration >= session.max_iterations:
            await self._fail(
                rt, ErrorReason.budget_exhausted, f"Reached maximum iterations ({session.max_iterations})"
            )
            return state

        state["next"] = "continue"
        return state

    def _route_after_reason(self, state: _LoopState) -> str:
        """Route to tool dispatch when a decision was parsed; otherwise end the pass."""
        return "dispatch" if state.get("next") == "dispatch" else "end"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _final_report(self, rt: SessionRuntime, decision: AgentDecision) -> FinalReport:
        session = rt.session
        report = decision.final_report or DecisionFinalReport()
        artifacts = rt.store.committed.artifacts
        ids_by_title = {a.title: a.id for a in artifacts}

        if report.artifacts_created:
            created = [
                ArtifactReference(title=a.title, description=a.description, artifact_id=ids_by_title.get(a.title))
                for a in report.artifacts_created
            ]
        else:
            created = [ArtifactReference(title=a.title, description=a.description, artifact_id=a.id) for a in artifacts]

        tools_used = list(report.tools_used) or list(dict.fromkeys(r.tool for r in session.tool_calls))
        elapsed = _utc_now() - session.start_time if session.start_time else None
        return FinalReport(
            summary=report.summary or decision.message_to_user or decision.reasoning,
            tools_used=tools_used,
            artifacts_created=created,
            key_findings=list(report.key_findings),
            recommendations=list(report.recommendations),
            total_iterations=session.current_iteration,
            total_tool_calls=len(session.tool_calls),
            total_time_ms=int(elapsed.total_seconds() * 1000) if elapsed else 0,
        )

    async def _set_status(self, rt: SessionRuntime, status: SessionStatus) -> None:
        session = rt.session
        previous = session.status
        session.status = status
        session.last_activity = _utc_now()
        if previous != status:
            logger.info(f"Session {rt.id}: {previous.value} -> {status.value}")
            await self._emit(
                rt.id, SessionEventType.status_changed, {"status": status.value, "previous": previous.value}
            )

    async def _fail(
        self, rt: SessionRuntime, reason: ErrorReason, message: str, *, iteration: Optional[int] = None
    ) -> None:
        session = rt.session
        session.error_reason = reason
        session.error_message = message
        session.last_error_iteration = session.current_iteration if iteration is None else iteration
        session.end_time = _utc_now()
        logger.warning(f"Session {rt.id} failed ({reason.value}): {message}")
        await self._set_status(rt, SessionStatus.error)

    async def _emit(self, session_id: str, type: SessionEventType, payload: Optional[Dict] = None) -> None:
        await self.events.emit(session_id, type, payload)
