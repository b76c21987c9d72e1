"""Session memory: the committed store, reference resolution and JSON export."""

from .export import export_memory, import_memory
from .references import contains_references, format_blackboard, resolve_references
from .store import MemoryStore, MemoryWriter

__all__ = [
    "MemoryStore",
    "MemoryWriter",
    "contains_references",
    "export_memory",
    "format_blackboard",
    "import_memory",
    "resolve_references",
]
