# This project was developed with assistance from AI tools.
"""Integration test fixtures -- real PostgreSQL, schema from Alembic.

A session-scoped container (started once per test run) provides PostgreSQL
with every migration applied, so the append-only trigger and advisory-lock
code paths run for real. Function-scoped fixtures give each test an isolated
DB session with savepoint rollback so tests don't leak state.
"""

import os

import httpx
import pytest
import pytest_asyncio
from fastapi import Request
from lendflow_db import DatabaseService
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool
from testcontainers.postgres import PostgresContainer

from tests.fakes import FakeStorage, RecordingDispatcher

# ---------------------------------------------------------------------------
# Mark all tests in this directory as integration
# ---------------------------------------------------------------------------
pytestmark = pytest.mark.integration

_DB_ROOT = os.path.join(os.path.dirname(__file__), "..", "..", "..", "db")


# ---------------------------------------------------------------------------
# Session-scoped: container + migrations
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def pg_container():
    """Start postgres:16-alpine via testcontainers."""
    with PostgresContainer(
        image="postgres:16-alpine",
        username="test",
        password="test",
        dbname="test",
    ) as pg:
        yield pg


@pytest.fixture(scope="session")
def db_url(pg_container):
    """Async DB URL for asyncpg."""
    host = pg_container.get_container_host_ip()
    port = pg_container.get_exposed_port(5432)
    return f"postgresql+asyncpg://test:test@{host}:{port}/test"


@pytest.fixture(scope="session")
def sync_db_url(pg_container):
    """Sync DB URL for Alembic (psycopg2)."""
    host = pg_container.get_container_host_ip()
    port = pg_container.get_exposed_port(5432)
    return f"postgresql://test:test@{host}:{port}/test"


@pytest.fixture(scope="session")
def alembic_config(sync_db_url):
    from alembic.config import Config

    cfg = Config(os.path.join(_DB_ROOT, "alembic.ini"))
    cfg.set_main_option("script_location", os.path.join(_DB_ROOT, "alembic"))
    cfg.set_main_option("sqlalchemy.url", sync_db_url)
    return cfg


@pytest.fixture(scope="session")
def _run_migrations(alembic_config):
    """alembic upgrade head against the fresh container."""
    from alembic import command

    command.upgrade(alembic_config, "head")


# ---------------------------------------------------------------------------
# Function-scoped: engine, per-test session with savepoint rollback
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def async_engine(db_url, _run_migrations):
    """Engine bound to the current test's event loop."""
    engine = create_async_engine(db_url, echo=False, poolclass=NullPool)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(async_engine):
    """Per-test DB session with savepoint rollback."""
    conn = await async_engine.connect()
    txn = await conn.begin()
    session = AsyncSession(
        bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False
    )
    yield session
    await session.close()
    await txn.rollback()
    await conn.close()


@pytest_asyncio.fixture
async def truncate_all(async_engine):
    """Yield-based: truncates all tables after the test completes.

    For tests that commit through their own sessions. TRUNCATE bypasses the
    row-level audit triggers.
    """
    yield
    async with async_engine.begin() as conn:
        await conn.execute(
            text(
                "TRUNCATE TABLE audit_violations, audit_events, notifications, "
                "loan_documents, kyc_documents, loans, bank_loan_types, loan_types, "
                "banker_profiles, customer_profiles, merchant_profiles, banks, users "
                "RESTART IDENTITY CASCADE"
            )
        )


@pytest_asyncio.fixture
async def pg_db(async_engine):
    """A DatabaseService over the test engine, for code that opens its own sessions."""
    return DatabaseService(engine=async_engine)


@pytest_asyncio.fixture
async def seeded(db_session):
    from tests.seed import seed_world

    return await seed_world(db_session)


@pytest_asyncio.fixture
async def client_factory(db_session):
    """Factory returning an async httpx client with dependency overrides."""
    from lendflow.dependencies import get_db, get_dispatcher, get_storage, get_verifier
    from lendflow.main import app
    from lendflow.middleware.auth import get_current_user
    from lendflow.services.ownership import DocumentOwnershipVerifier

    storage = FakeStorage()
    dispatcher = RecordingDispatcher()
    clients: list[httpx.AsyncClient] = []

    async def _make(user):
        async def _get_db():
            yield db_session

        async def _get_current_user(request: Request):
            return user

        app.dependency_overrides[get_db] = _get_db
        app.dependency_overrides[get_current_user] = _get_current_user
        app.dependency_overrides[get_storage] = lambda: storage
        app.dependency_overrides[get_verifier] = lambda: DocumentOwnershipVerifier(storage)
        app.dependency_overrides[get_dispatcher] = lambda: dispatcher
        transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
        client = httpx.AsyncClient(transport=transport, base_url="http://test")
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.aclose()
    app.dependency_overrides.clear()
