"""
Core utilities and configuration for the Free Agent engine.

This package provides shared functionality: settings loaded from the
environment and logging configuration.
"""

from free_agent.core.logging_config import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
