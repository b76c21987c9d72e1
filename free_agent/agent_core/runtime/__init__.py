"""Iteration loop engine, per-session runtime bundles and the event bus."""

from .engine import FreeAgentEngine
from .events import EventBus
from .models import EngineConfig, SessionRuntime

__all__ = ["EngineConfig", "EventBus", "FreeAgentEngine", "SessionRuntime"]
