# This project was developed with assistance from AI tools.
"""Fixtures for functional tests.

Requests go through the real FastAPI app over ``httpx.ASGITransport`` so they
share the event loop with the in-memory SQLite database from ``tests/conftest.py``.
``_clean_overrides`` clears dependency_overrides after every test so persona
configuration from one test never leaks into the next.
"""

import httpx
import pytest
import pytest_asyncio
from fastapi import HTTPException, Request

from lendflow.dependencies import get_db, get_dispatcher, get_storage, get_verifier
from lendflow.main import app as real_app
from lendflow.middleware.auth import get_current_user
from lendflow.schemas.auth import UserContext

PERSONA_HEADER = "x-test-persona"


@pytest.fixture(autouse=True)
def _clean_overrides():
    """Clear app dependency overrides after each test."""
    yield
    real_app.dependency_overrides.clear()


@pytest.fixture
def app():
    """Return the real FastAPI app with all routers mounted."""
    return real_app


@pytest_asyncio.fixture
async def client_factory(app, db, world, storage, verifier, dispatcher):
    """Factory returning an async client acting as ``user``.

    Several clients may be live in one test; each one tags its requests with
    its persona's user id. A client made with ``None`` sends no tag and goes
    through the real JWT dependency.
    """
    personas: dict[str, UserContext] = {}
    clients: list[httpx.AsyncClient] = []

    async def _get_db():
        async for session in db.session():
            yield session

    async def _get_current_user(request: Request) -> UserContext:
        user_id = request.headers.get(PERSONA_HEADER)
        if user_id is None:
            return await get_current_user(request)
        if user_id not in personas:
            raise HTTPException(status_code=401, detail="Unknown test persona")
        return personas[user_id]

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_verifier] = lambda: verifier
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_current_user] = _get_current_user

    def _make(user: UserContext | None) -> httpx.AsyncClient:
        headers = {}
        if user is not None:
            personas[user.user_id] = user
            headers[PERSONA_HEADER] = user.user_id
        transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
        client = httpx.AsyncClient(transport=transport, base_url="http://test", headers=headers)
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.aclose()
