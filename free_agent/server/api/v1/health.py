"""
Health and version endpoints.

``/health`` reports how many sessions the engine holds and how many loops
are currently executing. ``/version`` reports the installed distribution
version of the engine.
"""

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as distribution_version

from fastapi import APIRouter

from free_agent.agent_core.schemas.domain import SessionStatus
from free_agent.server.services.deps import ServiceDep

router = APIRouter()

DISTRIBUTION = "free-agent-engine"
API_VERSION = "v1"


def engine_version() -> str:
    try:
        return distribution_version(DISTRIBUTION)
    except PackageNotFoundError:
        # Running from a source checkout without an install.
        return "0+unknown"


@router.get(
    "/health",
    summary="Health Check",
    description="Report that the server is reachable and how busy the session engine is.",
    response_description="Status and session counts.",
)
async def health_check(service: ServiceDep):
    sessions = service.arena.all()
    return {
        "status": "ok",
        "sessions": len(service.arena),
        "root_sessions": len(service.arena.roots()),
        "running": sum(1 for rt in sessions if rt.session.status == SessionStatus.running),
        "default_model": service.engine.config.default_model,
    }


@router.get(
    "/version",
    summary="Get Version",
    description="Installed engine version and the API version it serves.",
    response_description="Version object.",
)
async def version():
    return {"version": engine_version(), "api_version": API_VERSION}
