"""Pydantic models for sessions, memory records, decisions and prompt configuration."""
