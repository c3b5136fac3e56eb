"""Integration test fixtures: the HTTP app over a per-test database."""

from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient, Response

from quota_engine.api.app import create_app
from quota_engine.engine import QuotaEngine


@pytest_asyncio.fixture
async def client(engine: QuotaEngine) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to an app that uses the test engine."""
    app = create_app(engine)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def employer_id(client: AsyncClient) -> str:
    response = await client.post(
        "/api/v1/employers",
        json={"name": "Acme Manufacturing", "employer_type": "corporate"},
    )
    assert response.status_code == 201
    return response.json()["employer_id"]


@pytest.fixture
def issue(client: AsyncClient) -> Callable[..., Awaitable[Response]]:
    """POST a permit with sensible defaults."""

    async def post(employer_id: str, **overrides: Any) -> Response:
        payload = {
            "employer_id": employer_id,
            "permit_number": "P-001",
            "issue_date": "2024-03-01",
            "approved_quota": 10,
        }
        payload.update(overrides)
        return await client.post("/api/v1/permits", json=payload)

    return post
