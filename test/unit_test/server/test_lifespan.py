"""
Unit tests for FastAPI application lifespan management.

Tests verify that the application startup installs the session service and
that shutdown stops every session loop and closes the remote tool client.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI

from free_agent.agent_core.tools.remote import HttpToolService
from free_agent.server.services import deps

pytestmark = pytest.mark.asyncio


class TestLifespan:
    """Test application startup and shutdown lifespan events."""

    async def test_lifespan_installs_and_shuts_down_service(self):
        from free_agent.server.main import lifespan

        service = MagicMock()
        service.shutdown = AsyncMock()
        remote = MagicMock()

        with (
            patch("free_agent.server.main.build_remote_service", return_value=remote),
            patch("free_agent.server.main.build_service", return_value=service) as build_service,
        ):
            async with lifespan(FastAPI()):
                assert deps.get_service() is service
                build_service.assert_called_once()
                assert build_service.call_args.kwargs["remote_service"] is remote

        service.shutdown.assert_awaited_once()
        assert deps._service is None

    async def test_lifespan_closes_http_tool_client(self):
        from free_agent.server.main import lifespan

        service = MagicMock()
        service.shutdown = AsyncMock()
        remote = MagicMock(spec=HttpToolService)
        remote.aclose = AsyncMock()

        with (
            patch("free_agent.server.main.build_remote_service", return_value=remote),
            patch("free_agent.server.main.build_service", return_value=service),
        ):
            async with lifespan(FastAPI()):
                pass

        remote.aclose.assert_awaited_once()
