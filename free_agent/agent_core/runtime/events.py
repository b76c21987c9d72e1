"""Session event bus.

Every event is appended to the ``EventRepository`` first and then fanned out
to subscribers. Subscribers receive events through their own unbounded
``asyncio.Queue``; the engine never waits on a slow consumer.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Set

from ..repos.interfaces import EventRepository
from ..schemas.domain import SessionEvent, SessionEventType

logger = logging.getLogger(__name__)


class EventBus:
    def __init__(self, repo: EventRepository) -> None:
        self._repo = repo
        self._subscribers: Dict[str, Set["asyncio.Queue[SessionEvent]"]] = defaultdict(set)

    def subscribe(self, session_id: str) -> "asyncio.Queue[SessionEvent]":
        queue: "asyncio.Queue[SessionEvent]" = asyncio.Queue()
        self._subscribers[session_id].add(queue)
        return queue

    def unsubscribe(self, session_id: str, queue: "asyncio.Queue[SessionEvent]") -> None:
        subscribers = self._subscribers.get(session_id)
        if subscribers is None:
            return
        subscribers.discard(queue)
        if not subscribers:
            del self._subscribers[session_id]

    async def emit(
        self, session_id: str, type: SessionEventType, payload: Optional[Dict[str, Any]] = None
    ) -> SessionEvent:
        event = SessionEvent(session_id=session_id, type=type, payload=payload or {})
        await self._repo.append(event)
        for queue in list(self._subscribers.get(session_id, ())):
            queue.put_nowait(event)
        logger.debug(f"Event {type.value} for session {session_id}")
        return event

    async def history(self, session_id: str, limit: int = 100, offset: int = 0) -> List[SessionEvent]:
        return await self._repo.list(session_id, limit=limit, offset=offset)
