"""
Domain Exception Handlers.

Maps the engine's ``FreeAgentError`` hierarchy to HTTP responses:

- ``SessionNotFoundError`` -> 404
- ``InvalidTransitionError`` and ``AssistanceResolutionError`` -> 409
- any other ``FreeAgentError`` -> 400
"""

from fastapi import Request
from fastapi.responses import JSONResponse

from free_agent.agent_core.errors import (
    AssistanceResolutionError,
    FreeAgentError,
    InvalidTransitionError,
    SessionNotFoundError,
)
from free_agent.core.logging_config import get_logger

logger = get_logger(__name__)


def _error_response(status_code: int, exc: FreeAgentError) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "error_type": type(exc).__name__})


async def session_not_found_handler(request: Request, exc: SessionNotFoundError) -> JSONResponse:
    logger.debug(f"{request.method} {request.url.path}: {exc}")
    return _error_response(404, exc)


async def conflict_handler(request: Request, exc: FreeAgentError) -> JSONResponse:
    logger.info(f"Rejected {request.method} {request.url.path}: {exc}")
    return _error_response(409, exc)


async def free_agent_error_handler(request: Request, exc: FreeAgentError) -> JSONResponse:
    logger.info(f"Bad request {request.method} {request.url.path}: {exc}")
    return _error_response(400, exc)


HANDLERS = (
    (SessionNotFoundError, session_not_found_handler),
    (InvalidTransitionError, conflict_handler),
    (AssistanceResolutionError, conflict_handler),
    (FreeAgentError, free_agent_error_handler),
)
