from typing import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient


@pytest_asyncio.fixture(name="client")
async def client_fixture(service) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client whose session service is the test's scripted one.

    ``ASGITransport`` does not run the application lifespan, so no real model
    or remote tool service is built.
    """
    from free_agent.server.main import app
    from free_agent.server.services.deps import get_service

    app.dependency_overrides[get_service] = lambda: service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost") as client:
        yield client

    app.dependency_overrides.clear()
