"""
Main Application Entry Point.

This module initializes the FastAPI application, configures middleware (CORS),
registers exception handlers and includes all API routers. It serves as the
root of the web server.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from free_agent.agent_core.factory import build_remote_service, build_service
from free_agent.agent_core.tools.remote import HttpToolService
from free_agent.core.config import settings
from free_agent.core.logging_config import get_logger, setup_logging

from .api.v1 import health, sessions
from .core import constant
from .exception_handlers import setup_exception_handlers
from .services.deps import set_service

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events.

    Builds the session service on startup and cancels every running session
    loop on shutdown.
    """
    # Startup
    logger.info("Starting up Free Agent Server...")
    remote = build_remote_service(settings)
    service = build_service(settings=settings, remote_service=remote)
    set_service(service)
    logger.info(f"Session service ready (default model {settings.default_model})")

    yield

    # Shutdown
    logger.info("Shutting down Free Agent Server...")
    await service.shutdown()
    if isinstance(remote, HttpToolService):
        await remote.aclose()
    set_service(None)


app = FastAPI(
    title=constant.PROJECT_NAME,
    description="""
    Free Agent Server API

    This API drives autonomous Free Agent sessions: start, stop, reset, continue and retry
    sessions, answer assistance requests, interject, and stream real-time session events.
    """,
    version="0.1.0",
    openapi_url=f"{constant.API_V1_STR}/openapi.json",
    docs_url=f"{constant.API_V1_STR}/docs",
    redoc_url=f"{constant.API_V1_STR}/redoc",
    lifespan=lifespan,
)

# Set all CORS enabled origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)

app.include_router(health.router, tags=["health"])
app.include_router(sessions.router, prefix=f"{constant.API_V1_STR}/sessions", tags=["sessions"])


def run() -> None:
    """Serve the application with uvicorn using the configured host and port."""
    import uvicorn

    uvicorn.run(
        "free_agent.server.main:app",
        host=settings.server_host,
        port=settings.server_port,
        log_config=None,
    )
