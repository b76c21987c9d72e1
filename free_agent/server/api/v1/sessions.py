"""
Free Agent Sessions API Endpoints.

This module maps the session command surface and its read-only projections to
HTTP. Every command returns the session snapshot taken right after the
command was applied; the loop itself keeps running in the background.

Includes:
- Commands: start, stop, reset, continue, retry, interject, respond to
  assistance, update scratchpad, import memory
- Projections: session snapshot, children, active tools, cache size, event
  history, memory export
- Real-time event streaming via Server-Sent Events (SSE)
"""

import asyncio
from typing import AsyncIterator, List

from fastapi import APIRouter, Request
from fastapi.responses import Response
from sse_starlette.sse import EventSourceResponse

from free_agent.agent_core.schemas.domain import Session, SessionEvent
from free_agent.agent_core.service import FreeAgentService
from free_agent.core.logging_config import get_logger
from free_agent.server.core import constant
from free_agent.server.schemas import (
    ActiveTool,
    AssistanceAnswer,
    CacheInfo,
    ErrorEvent,
    InterjectionCreate,
    KeepAliveEvent,
    ScratchpadUpdate,
    SessionContinue,
    SessionRestart,
    SessionRetry,
    SessionStart,
)
from free_agent.server.services.deps import ServiceDep

logger = get_logger(__name__)
router = APIRouter()

_NOT_FOUND = {404: {"description": "Session not found"}}
_CONFLICT = {404: {"description": "Session not found"}, 409: {"description": "Command not allowed in this status"}}


@router.post(
    "/",
    response_model=Session,
    status_code=201,
    summary="Start Session",
    description="Create a new Free Agent session and launch its iteration loop.",
    response_description="The created session.",
)
async def start_session(session_in: SessionStart, service: ServiceDep):
    """
    Start a new session.

    - **prompt**: The task for the agent.
    - **model**: Model selector (optional, defaults to the configured model).
    - **max_iterations**: Iteration budget (optional).
    - **files**: Input files (optional).
    - **advanced_features**: Self-authoring / spawn switches (optional).
    """
    logger.info(f"Starting session, prompt: {session_in.prompt[:80]}")
    session = await service.start(
        session_in.prompt,
        model=session_in.model,
        files=[f.to_domain() for f in session_in.files],
        max_iterations=session_in.max_iterations,
        advanced_features=session_in.advanced_features,
        prompt_configuration=session_in.prompt_configuration,
    )
    return service.snapshot(session.id)


@router.get(
    "/",
    response_model=List[Session],
    summary="List Sessions",
    description="List top-level sessions, optionally including child sessions.",
)
async def list_sessions(service: ServiceDep, include_children: bool = False):
    return service.list_sessions(include_children=include_children)


@router.get("/{session_id}", response_model=Session, summary="Get Session", responses=_NOT_FOUND)
async def get_session(session_id: str, service: ServiceDep):
    """Current snapshot of the session aggregate."""
    return service.snapshot(session_id)


@router.post("/{session_id}/start", response_model=Session, summary="Restart Idle Session", responses=_CONFLICT)
async def restart_session(session_id: str, service: ServiceDep, restart_in: SessionRestart = SessionRestart()):
    """Launch an idle session again, keeping its memory."""
    await service.start(
        restart_in.prompt,
        session_id=session_id,
        max_iterations=restart_in.max_iterations,
        advanced_features=restart_in.advanced_features,
    )
    return service.snapshot(session_id)


@router.post("/{session_id}/stop", response_model=Session, summary="Stop Session", responses=_CONFLICT)
async def stop_session(session_id: str, service: ServiceDep):
    """Cancel the loop; the session becomes idle with its memory preserved."""
    await service.stop(session_id)
    return service.snapshot(session_id)


@router.post("/{session_id}/reset", response_model=Session, summary="Reset Session", responses=_NOT_FOUND)
async def reset_session(session_id: str, service: ServiceDep):
    """Cancel the loop and clear memory, cache and children."""
    await service.reset(session_id)
    return service.snapshot(session_id)


@router.post("/{session_id}/continue", response_model=Session, summary="Continue Session", responses=_NOT_FOUND)
async def continue_session(session_id: str, service: ServiceDep, continue_in: SessionContinue = SessionContinue()):
    """Return the session to idle keeping memory, optionally with a new prompt."""
    await service.continue_session(session_id, prompt=continue_in.prompt)
    return service.snapshot(session_id)


@router.post("/{session_id}/retry", response_model=Session, summary="Retry Session", responses=_CONFLICT)
async def retry_session(session_id: str, service: ServiceDep, retry_in: SessionRetry = SessionRetry()):
    """Re-launch a paused or failed session."""
    await service.retry(session_id, max_iterations=retry_in.max_iterations)
    return service.snapshot(session_id)


@router.post("/{session_id}/interject", response_model=Session, summary="Interject", responses=_CONFLICT)
async def interject(session_id: str, interjection: InterjectionCreate, service: ServiceDep):
    """Append a user message to the blackboard; a running iteration is re-executed."""
    await service.interject(session_id, interjection.message)
    return service.snapshot(session_id)


@router.post(
    "/{session_id}/assistance",
    response_model=Session,
    summary="Respond to Assistance Request",
    responses=_CONFLICT,
)
async def respond_to_assistance(session_id: str, answer: AssistanceAnswer, service: ServiceDep):
    """Resolve the pending assistance request and resume the loop."""
    await service.respond_to_assistance(
        session_id,
        answer.request_id,
        response=answer.response,
        selected_choice=answer.selected_choice,
        file_id=answer.file_id,
    )
    return service.snapshot(session_id)


@router.put("/{session_id}/scratchpad", response_model=Session, summary="Update Scratchpad", responses=_NOT_FOUND)
async def update_scratchpad(session_id: str, update: ScratchpadUpdate, service: ServiceDep):
    await service.update_scratchpad(session_id, update.content)
    return service.snapshot(session_id)


@router.get("/{session_id}/children", response_model=List[Session], summary="List Child Sessions")
async def list_children(session_id: str, service: ServiceDep):
    return service.children(session_id)


@router.get("/{session_id}/active-tools", response_model=List[ActiveTool], summary="Active Tool Calls")
async def active_tools(session_id: str, service: ServiceDep):
    return service.active_tools(session_id)


@router.get("/{session_id}/cache", response_model=CacheInfo, summary="Tool Cache Size")
async def cache_info(session_id: str, service: ServiceDep):
    return CacheInfo(session_id=session_id, size=service.cache_size(session_id))


@router.get("/{session_id}/memory", summary="Export Memory", responses=_NOT_FOUND)
async def export_memory(session_id: str, service: ServiceDep):
    """Committed session memory as a JSON document."""
    return Response(content=service.export_memory(session_id), media_type="application/json")


@router.get(
    "/{session_id}/events",
    response_model=List[SessionEvent],
    summary="List Session Events",
    description="Retrieve the event history for a specific session.",
)
async def list_session_events(session_id: str, service: ServiceDep, limit: int = 100, offset: int = 0):
    return await service.events(session_id, limit=limit, offset=offset)


async def session_event_stream(
    service: FreeAgentService,
    session_id: str,
    *,
    keepalive: float = constant.SSE_KEEPALIVE_SECONDS,
    max_idle_cycles: int = constant.SSE_MAX_IDLE_CYCLES,
) -> AsyncIterator[str]:
    """Yield JSON strings for a session: its history first, then live events.

    Keep-alive messages are sent while the session is quiet; the stream closes
    after ``max_idle_cycles`` consecutive quiet periods.
    """
    queue = service.subscribe(session_id)
    try:
        seen = set()
        for event in await service.events(session_id, limit=10_000):
            seen.add(event.id)
            yield event.model_dump_json()

        idle_cycles = 0
        while idle_cycles < max_idle_cycles:
            try:
                event = await asyncio.wait_for(queue.get(), timeout=keepalive)
            except asyncio.TimeoutError:
                idle_cycles += 1
                yield KeepAliveEvent().model_dump_json()
                continue
            idle_cycles = 0
            if event.id in seen:
                continue
            yield event.model_dump_json()
    finally:
        service.unsubscribe(session_id, queue)


@router.get(
    "/{session_id}/events/stream",
    summary="Stream Session Events",
    description="Subscribe to a Server-Sent Events (SSE) stream for a specific session.",
    response_description="A stream of event objects.",
    responses={
        200: {
            "description": "SSE stream established",
            "content": {"text/event-stream": {"example": 'data: {"comment": "keep-alive"}\n\n'}},
        },
        **_NOT_FOUND,
    },
)
async def stream_session_events(session_id: str, request: Request, service: ServiceDep):
    """
    Stream events for a specific session via Server-Sent Events (SSE).

    The stream starts with the stored history and then follows live events
    (iteration progress, tool calls, status changes, assistance requests).
    Each message is a JSON-serialized ``SessionEvent``.
    """
    service.snapshot(session_id)
    logger.info(f"Starting event stream for session: {session_id}")

    async def event_generator():
        try:
            async for data in session_event_stream(service, session_id):
                if await request.is_disconnected():
                    logger.info(f"Client disconnected from stream for session: {session_id}")
                    break
                yield data
        except Exception as e:
            logger.error(f"Error in event stream for session {session_id}: {e}", exc_info=True)
            yield ErrorEvent(error="Event stream failed", details=str(e)).model_dump_json()

    return EventSourceResponse(event_generator())
