"""Session memory store.

``MemoryStore`` owns the committed ``SessionMemory`` of one session. All
writes go through ``MemoryStore.transaction()``, which serializes writers with
an ``asyncio.Lock`` and stages changes on a copy of the committed memory. The
copy replaces the committed object only when the transaction block exits
cleanly; an exception or a task cancellation discards it, so readers never
observe a partially applied tool result.

Invariants enforced here:

- the blackboard is append-only,
- attribute names are unique per session and attributes are never replaced,
- artifacts are append-only.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from ..errors import DuplicateAttributeError
from ..schemas.domain import (
    BlackboardCategory,
    BlackboardEntry,
    FreeAgentArtifact,
    ScratchpadMode,
    Session,
    SessionMemory,
    ToolResultAttribute,
)

logger = logging.getLogger(__name__)


class MemoryWriter:
    """Mutation handle over a staged copy of session memory.

    Instances are only ever produced by ``MemoryStore.transaction()`` and are
    the single way tool handlers and the iteration loop change memory.
    """

    def __init__(self, staged: SessionMemory, *, iteration: int) -> None:
        self._memory = staged
        self.iteration = iteration

    @property
    def memory(self) -> SessionMemory:
        """The staged memory, including writes made in this transaction."""
        return self._memory

    def append_blackboard(
        self,
        category: BlackboardCategory,
        content: str,
        data: Optional[Dict[str, Any]] = None,
        *,
        iteration: Optional[int] = None,
    ) -> BlackboardEntry:
        entry = BlackboardEntry(
            category=category,
            content=content,
            data=data,
            iteration=self.iteration if iteration is None else iteration,
        )
        self._memory.blackboard.append(entry)
        return entry

    def write_scratchpad(self, content: str, mode: ScratchpadMode = ScratchpadMode.append) -> str:
        if mode == ScratchpadMode.replace:
            self._memory.scratchpad = content
        else:
            existing = self._memory.scratchpad
            self._memory.scratchpad = f"{existing}\n\n{content}" if existing else content
        return self._memory.scratchpad

    def next_attribute_name(self) -> str:
        """Reserve the next ``result_N`` name, skipping names already taken."""
        while True:
            self._memory.attribute_counter += 1
            name = f"result_{self._memory.attribute_counter}"
            if name not in self._memory.attributes:
                return name

    def unique_attribute_name(self, requested: str) -> str:
        """Return ``requested`` or the first free ``requested_N`` variant."""
        if requested not in self._memory.attributes:
            return requested
        suffix = 2
        while f"{requested}_{suffix}" in self._memory.attributes:
            suffix += 1
        return f"{requested}_{suffix}"

    def add_attribute(self, attribute: ToolResultAttribute) -> ToolResultAttribute:
        if attribute.name in self._memory.attributes:
            raise DuplicateAttributeError(attribute.name)
        self._memory.attributes[attribute.name] = attribute
        return attribute

    def add_artifact(self, artifact: FreeAgentArtifact) -> FreeAgentArtifact:
        self._memory.artifacts.append(artifact)
        return artifact


def _stage(memory: SessionMemory) -> SessionMemory:
    # Records are frozen, so copying the containers is enough to isolate writes.
    return memory.model_copy(
        update={
            "blackboard": list(memory.blackboard),
            "attributes": dict(memory.attributes),
            "artifacts": list(memory.artifacts),
        }
    )


class MemoryStore:
    """Single-writer store bound to one ``Session`` aggregate."""

    def __init__(self, session: Session) -> None:
        self._session = session
        self._lock = asyncio.Lock()

    @property
    def committed(self) -> SessionMemory:
        """The last committed memory object. Never mutate it directly."""
        return self._session.memory

    def snapshot(self) -> SessionMemory:
        """Deep copy of the committed memory, safe to hand to another session."""
        return self._session.memory.model_copy(deep=True)

    @asynccontextmanager
    async def transaction(self, *, iteration: Optional[int] = None) -> AsyncIterator[MemoryWriter]:
        async with self._lock:
            staged = _stage(self._session.memory)
            writer = MemoryWriter(
                staged,
                iteration=self._session.current_iteration if iteration is None else iteration,
            )
            yield writer
            self._session.memory = staged
            logger.debug(
                f"Committed memory for session {self._session.id}: "
                f"blackboard={len(staged.blackboard)} attributes={len(staged.attributes)} "
                f"artifacts={len(staged.artifacts)} scratchpad={len(staged.scratchpad)} chars"
            )

    async def replace(self, memory: SessionMemory) -> None:
        """Swap the whole memory, used by reset and import."""
        async with self._lock:
            self._session.memory = memory
