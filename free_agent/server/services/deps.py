"""
Session Service Dependency.

Provides a singleton instance of the FreeAgentService for API endpoints. The
application lifespan installs the configured service; tests override
``get_service`` through ``app.dependency_overrides``.
"""

from typing import Annotated, Optional

from fastapi import Depends

from free_agent.agent_core.factory import build_service
from free_agent.agent_core.service import FreeAgentService

# Global singleton
_service: Optional[FreeAgentService] = None


def get_service() -> FreeAgentService:
    global _service
    if _service is None:
        _service = build_service()
    return _service


def set_service(service: Optional[FreeAgentService]) -> None:
    global _service
    _service = service


ServiceDep = Annotated[FreeAgentService, Depends(get_service)]
