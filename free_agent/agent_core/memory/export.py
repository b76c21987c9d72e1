"""JSON export and import of session memory."""

from __future__ import annotations

from typing import Union

from ..schemas.domain import SessionMemory


def export_memory(memory: SessionMemory) -> str:
    return memory.model_dump_json()


def import_memory(data: Union[str, bytes]) -> SessionMemory:
    return SessionMemory.model_validate_json(data)
