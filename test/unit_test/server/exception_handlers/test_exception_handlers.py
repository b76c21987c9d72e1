"""
Unit tests for server exception handlers.

Tests cover the global 500 handler and the mapping of engine errors to
HTTP status codes.
"""

import json
from unittest.mock import Mock, patch

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from httpx import ASGITransport, AsyncClient

from free_agent.agent_core.errors import (
    AssistanceResolutionError,
    InvalidTransitionError,
    SessionNotFoundError,
    ToolValidationError,
)
from free_agent.server.exception_handlers import setup_exception_handlers
from free_agent.server.exception_handlers.global_handler import (
    global_exception_handler,
)


class TestGlobalExceptionHandler:
    """Test suite for global exception handler."""

    @pytest.fixture
    def mock_request(self):
        """Create a mock request object."""
        request = Mock(spec=Request)
        request.method = "POST"
        request.url.path = "/api/v1/sessions/"
        request.query_params = {}
        request.client = Mock()
        request.client.host = "127.0.0.1"
        return request

    @pytest.mark.asyncio
    async def test_exception_handler_logs_error(self, mock_request):
        """Test that exception handler logs errors with their type."""
        exc = ValueError("Test error")

        with patch("free_agent.server.exception_handlers.global_handler.logger") as mock_logger:
            await global_exception_handler(mock_request, exc)

            mock_logger.error.assert_called_once()
            call_args = mock_logger.error.call_args
            assert "Unhandled exception" in call_args[0][0]
            assert call_args[1]["extra"]["error_type"] == "ValueError"
            assert call_args[1]["extra"]["path"] == "/api/v1/sessions/"

    @pytest.mark.asyncio
    async def test_exception_handler_returns_500_with_error_id(self, mock_request):
        exc = RuntimeError("Test error")

        with patch("free_agent.server.exception_handlers.global_handler.logger"):
            response = await global_exception_handler(mock_request, exc)

        assert isinstance(response, JSONResponse)
        assert response.status_code == 500
        body = json.loads(response.body.decode())
        assert body["error_id"] == id(exc)
        assert body["error_type"] == "RuntimeError"
        assert body["detail"] == "Internal server error"

    @pytest.mark.asyncio
    async def test_exception_handler_without_client(self, mock_request):
        """A request without client information is still handled."""
        mock_request.client = None

        with patch("free_agent.server.exception_handlers.global_handler.logger") as mock_logger:
            response = await global_exception_handler(mock_request, KeyError("x"))

        assert response.status_code == 500
        assert mock_logger.error.call_args[1]["extra"]["client"] == "unknown"


class TestDomainErrorMapping:
    """Engine errors raised from routes map to their HTTP status codes."""

    @pytest.fixture
    def app(self):
        app = FastAPI()
        setup_exception_handlers(app)

        @app.get("/missing")
        async def missing():
            raise SessionNotFoundError("abc")

        @app.get("/conflict")
        async def conflict():
            raise InvalidTransitionError("stop", "completed")

        @app.get("/assistance")
        async def assistance():
            raise AssistanceResolutionError("req-1", "no pending request")

        @app.get("/invalid")
        async def invalid():
            raise ToolValidationError("bad parameters")

        @app.get("/boom")
        async def boom():
            raise RuntimeError("boom")

        return app

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("path", "status_code", "error_type"),
        [
            ("/missing", 404, "SessionNotFoundError"),
            ("/conflict", 409, "InvalidTransitionError"),
            ("/assistance", 409, "AssistanceResolutionError"),
            ("/invalid", 400, "ToolValidationError"),
        ],
    )
    async def test_domain_errors(self, app, path, status_code, error_type):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost") as client:
            response = await client.get(path)

        assert response.status_code == status_code
        assert response.json()["error_type"] == error_type

    @pytest.mark.asyncio
    async def test_conflict_detail_names_command_and_status(self, app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost") as client:
            response = await client.get("/conflict")

        assert response.json()["detail"] == "Cannot 'stop' a session in status 'completed'"

    @pytest.mark.asyncio
    async def test_unhandled_error_is_500(self, app):
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://localhost") as client:
            response = await client.get("/boom")

        assert response.status_code == 500
        assert response.json()["error_type"] == "RuntimeError"
