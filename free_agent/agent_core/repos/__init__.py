"""Repository contracts and in-memory implementations."""

from .interfaces import EventRepository
from .memory import InMemoryEventRepository, SessionArena

__all__ = ["EventRepository", "InMemoryEventRepository", "SessionArena"]
