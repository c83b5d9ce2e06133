"""Integration test fixtures: the ASGI app over the shared test database."""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from punchd.api.app import create_app
from punchd.models import User


def headers_for(user: User) -> dict[str, str]:
    """Identity headers the API reads the acting user from."""
    return {
        "X-Company-ID": str(user.company_id),
        "X-User-ID": str(user.id),
        "X-User-Role": user.role,
    }


@pytest.fixture
async def client(
    session_factory, photo_store, face_comparator, notifier, test_settings, clock
) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing."""
    app = create_app(
        session_factory=session_factory,
        photo_store=photo_store,
        face_comparator=face_comparator,
        notifier=notifier,
        settings=test_settings,
        clock=clock,
    )
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
