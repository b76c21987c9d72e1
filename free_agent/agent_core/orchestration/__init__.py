"""Child session spawning and reconciliation."""

from .spawn import ChildSpec, SpawnCoordinator, SpawnRequest, SpawnSlot, validate_spawn

__all__ = ["ChildSpec", "SpawnCoordinator", "SpawnRequest", "SpawnSlot", "validate_spawn"]
