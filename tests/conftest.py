"""Test fixtures for ci-build-api."""

import asyncio
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ci_build_api.db import get_db
from ci_build_api.main import app
from ci_build_api.models import Base, Build, Commit, EventType, Repository, Request
from ci_build_api.services import create_build
from ci_build_api.services.numbering import RepositoryLocks

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def get_alembic_config(connection_url: str | None = None) -> Config:
    """Get alembic config for running migrations."""
    base_path = Path(__file__).parent.parent
    alembic_cfg = Config(str(base_path / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(base_path / "migrations"))
    if connection_url:
        alembic_cfg.set_main_option("sqlalchemy.url", connection_url)
    return alembic_cfg


@pytest.fixture
async def async_engine():
    """Create a test database engine with schema initialized.

    For SQLite tests, we use Base.metadata.create_all(). In CI/integration
    tests against PostgreSQL, alembic migrations should be used instead.
    """
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def async_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session_maker = async_sessionmaker(async_engine, expire_on_commit=False)
    async with async_session_maker() as session:
        yield session


@pytest.fixture
async def client(async_engine) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with isolated database."""
    async_session_maker = async_sessionmaker(async_engine, expire_on_commit=False)

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with async_session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def repository(async_session: AsyncSession) -> Repository:
    """A registered repository with no builds."""
    repository = Repository(owner_name="svenfuchs", name="minimal")
    async_session.add(repository)
    await async_session.commit()
    return repository


async def add_request(
    db: AsyncSession,
    repository: Repository,
    branch: str | None = "master",
    event_type: EventType = EventType.PUSH,
    config: dict | None = None,
) -> tuple[Commit, Request]:
    """Record a commit and an accepted request for it."""
    commit = Commit(
        repository_id=repository.id,
        commit="62aae5f70ceee39123ef",
        branch=branch,
    )
    db.add(commit)
    await db.flush()
    request = Request(
        repository_id=repository.id,
        commit_id=commit.id,
        event_type=event_type.value,
        config=config,
    )
    db.add(request)
    await db.flush()
    return commit, request


@pytest.fixture
def new_request(async_session: AsyncSession, repository: Repository):
    """Factory recording a commit and request on the test repository."""

    async def factory(**kwargs) -> tuple[Commit, Request]:
        return await add_request(async_session, repository, **kwargs)

    return factory


@pytest.fixture
def make_build(async_session: AsyncSession, repository: Repository):
    """Factory creating builds through the regular creation path.

    ``state`` and ``result`` are written directly afterwards so tests can
    set up build histories without walking the state machine.
    """

    async def factory(
        state: str | None = None,
        result: int | None = None,
        branch: str | None = "master",
        event_type: EventType = EventType.PUSH,
        config: dict | None = None,
    ) -> Build:
        commit, request = await add_request(
            async_session, repository, branch, event_type, config
        )
        build = await create_build(
            async_session,
            repository,
            commit,
            request,
            config or {"rvm": "2.7"},
            locks=RepositoryLocks(),
        )
        if state is not None:
            build.state = state
            build.result = result
            await async_session.commit()
        return build

    return factory


# PostgreSQL test fixtures for integration testing with real migrations


@pytest.fixture
async def pg_engine(request):
    """Create a PostgreSQL test database engine with migrations applied.

    This fixture requires a PostgreSQL database URL to be set via the
    CI_BUILD_API_TEST_DATABASE_URL environment variable.

    Usage:
        CI_BUILD_API_TEST_DATABASE_URL=postgresql+asyncpg://... pytest
    """
    import os

    pg_url = os.environ.get("CI_BUILD_API_TEST_DATABASE_URL")
    if not pg_url:
        pytest.skip("PostgreSQL test database URL not configured")

    engine = create_async_engine(pg_url, echo=False)

    # env.py runs its own event loop, so migrate from a worker thread
    alembic_cfg = get_alembic_config(pg_url)
    await asyncio.to_thread(command.upgrade, alembic_cfg, "head")

    yield engine

    # Cleanup - downgrade to base
    await asyncio.to_thread(command.downgrade, alembic_cfg, "base")
    await engine.dispose()
