"""HTTP client fixtures for API tests."""

from typing import AsyncGenerator, Callable

import pytest
from httpx import ASGITransport, AsyncClient

from solar_marketplace.api.deps import get_session_factory_dep
from solar_marketplace.core.config import get_settings
from solar_marketplace.core.security import Principal
from solar_marketplace.main import create_app


@pytest.fixture
def auth_headers() -> Callable[[Principal], dict[str, str]]:
    """Build gateway headers identifying a principal."""

    def _headers(principal: Principal) -> dict[str, str]:
        return {"X-User-Id": str(principal.id), "X-User-Role": principal.role.value}

    return _headers


@pytest.fixture
async def client(session_factory, settings) -> AsyncGenerator[AsyncClient, None]:
    """
    Create an async client against an app bound to the test database.

    Yields:
        AsyncClient sending requests through the ASGI app
    """
    app = create_app()
    app.dependency_overrides[get_session_factory_dep] = lambda: session_factory
    app.dependency_overrides[get_settings] = lambda: settings

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
