from __future__ import annotations

"""Repository interface contracts.

The engine and the service depend on these Protocols instead of concrete
storage implementations.

Contract guidelines
-------------------

- All methods are async.
- The event repository is append-only.
"""

from typing import List, Protocol

from ..schemas.domain import SessionEvent


class EventRepository(Protocol):
    """Append-only timeline of session events."""

    async def append(self, event: SessionEvent) -> None:
        """
        Append a new event.

        Args:
            event: The event to persist.
        """
        ...

    async def list(self, session_id: str, limit: int = 100, offset: int = 0) -> List[SessionEvent]:
        """
        List events of a session in append order.

        Args:
            session_id: The session identifier.
            limit: Max number of events to return.
            offset: Number of events to skip.
        """
        ...

