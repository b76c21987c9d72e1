"""Session-scoped cache for idempotent remote tool calls.

Entries are keyed by the tool name plus the canonical JSON of its parameters.
Only successful results are stored. Concurrent identical calls share one
in-flight execution: the first caller runs it, later callers await its result.
"""

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

from .base import ToolName, ToolResult

logger = logging.getLogger(__name__)


def cache_key(tool: ToolName, params: Mapping[str, Any]) -> str:
    canonical = json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)
    return f"{tool.value}:{canonical}"


def _consume(future: "asyncio.Future[ToolResult]") -> None:
    # Mark a failed future's exception as retrieved when nobody else awaited it.
    if not future.cancelled():
        future.exception()


class ToolCallCache:
    """Cache of successful tool results with optional expiry.

    Attributes:
        ttl: Lifetime of an entry in seconds (None = no expiry)
    """

    def __init__(self, ttl: Optional[float] = 300.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[ToolResult, float]] = {}
        self._inflight: Dict[str, "asyncio.Future[ToolResult]"] = {}

    def _expired(self, stored_at: float) -> bool:
        return self.ttl is not None and self._clock() - stored_at > self.ttl

    def get(self, key: str) -> Optional[ToolResult]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        result, stored_at = entry
        if self._expired(stored_at):
            del self._entries[key]
            return None
        return result

    def put(self, key: str, result: ToolResult) -> None:
        if result.success:
            self._entries[key] = (result, self._clock())

    @property
    def size(self) -> int:
        for key in [k for k, (_, at) in self._entries.items() if self._expired(at)]:
            del self._entries[key]
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()
        self._inflight.clear()

    async def get_or_run(self, key: str, fn: Callable[[], Awaitable[ToolResult]]) -> Tuple[ToolResult, bool]:
        """Return ``(result, served_from_cache)`` for ``key``.

        ``fn`` runs only when there is neither a live entry nor an identical
        call already in flight.
        """
        hit = self.get(key)
        if hit is not None:
            logger.debug(f"Tool cache hit: {key[:120]}")
            return hit, True

        pending = self._inflight.get(key)
        if pending is not None:
            logger.debug(f"Joining in-flight tool call: {key[:120]}")
            return await asyncio.shield(pending), True

        future: "asyncio.Future[ToolResult]" = asyncio.get_running_loop().create_future()
        future.add_done_callback(_consume)
        self._inflight[key] = future
        try:
            result = await fn()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            raise
        finally:
            if self._inflight.get(key) is future:
                del self._inflight[key]

        self.put(key, result)
        future.set_result(result)
        return result, False
