"""In-memory repository implementations.

``SessionArena`` is the process-local index of every live session runtime,
parents and children alike. Children are ordinary entries whose session's
orchestration block names the parent; the parent references them by id.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING, Dict, List, Optional

from ..errors import SessionNotFoundError
from ..schemas.domain import SessionEvent

if TYPE_CHECKING:
    from ..runtime.models import SessionRuntime


class InMemoryEventRepository:
    def __init__(self) -> None:
        self._events: Dict[str, List[SessionEvent]] = defaultdict(list)

    async def append(self, event: SessionEvent) -> None:
        self._events[event.session_id].append(event)

    async def list(self, session_id: str, limit: int = 100, offset: int = 0) -> List[SessionEvent]:
        return list(self._events.get(session_id, [])[offset : offset + limit])


class SessionArena:
    def __init__(self) -> None:
        self._runtimes: Dict[str, "SessionRuntime"] = {}

    def add(self, runtime: "SessionRuntime") -> None:
        self._runtimes[runtime.id] = runtime

    def get(self, session_id: str) -> "SessionRuntime":
        """
        Raises:
            SessionNotFoundError: If the id is not in the arena.
        """
        runtime = self._runtimes.get(session_id)
        if runtime is None:
            raise SessionNotFoundError(session_id)
        return runtime

    def find(self, session_id: str) -> Optional["SessionRuntime"]:
        return self._runtimes.get(session_id)

    def remove(self, session_id: str) -> Optional["SessionRuntime"]:
        return self._runtimes.pop(session_id, None)

    def children_of(self, parent_id: str) -> List["SessionRuntime"]:
        return [rt for rt in self._runtimes.values() if rt.session.orchestration.parent_id == parent_id]

    def all(self) -> List["SessionRuntime"]:
        return list(self._runtimes.values())

    def roots(self) -> List["SessionRuntime"]:
        return [rt for rt in self._runtimes.values() if rt.session.orchestration.parent_id is None]

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._runtimes

    def __len__(self) -> int:
        return len(self._runtimes)
