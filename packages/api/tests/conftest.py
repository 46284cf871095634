# This project was developed with assistance from AI tools.
"""Shared fixtures: an in-memory SQLite database per test plus fake collaborators.

Service tests run the real SQLAlchemy code against ``sqlite+aiosqlite`` on a
single StaticPool connection. Storage and notification dispatch are replaced
by the in-memory fakes in ``tests/fakes.py``.
"""

import pytest
import pytest_asyncio
from lendflow_db import DatabaseService

from lendflow.services.ownership import DocumentOwnershipVerifier
from tests.fakes import FakeStorage, RecordingDispatcher
from tests.seed import seed_world

SQLITE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def db():
    """Fresh schema per test."""
    service = DatabaseService(SQLITE_URL)
    await service.create_all()
    yield service
    await service.dispose()


@pytest_asyncio.fixture
async def session(db):
    async with db.session_factory() as s:
        yield s


@pytest_asyncio.fixture
async def world(session):
    """Seeded personas, bank and loan types."""
    return await seed_world(session)


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def verifier(storage):
    return DocumentOwnershipVerifier(storage)


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()
