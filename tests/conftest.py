"""Pytest configuration and shared fixtures."""

import os
from collections.abc import AsyncGenerator

import pytest

from permgraph.config import Settings
from permgraph.core.cache import MemoryCacheStore
from permgraph.core.database import (
    create_engine,
    create_schema,
    create_session_factory,
    drop_schema,
)
from permgraph.core.directory import InMemoryDirectory, SqlAlchemyDirectory
from permgraph.core.permissions import PermissionChecker, PermissionManager
from permgraph.system import PermissionSystem, create_permission_system


# Test database URL - in-memory SQLite unless overridden
TEST_DATABASE_URL = os.environ.get(
    "PERMGRAPH_TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:"
)


def make_settings(**overrides: object) -> Settings:
    """Build settings isolated from the environment and any .env file."""
    return Settings(_env_file=None, **overrides)  # type: ignore[call-arg]


@pytest.fixture
def settings() -> Settings:
    """Provide default test settings with the cache enabled."""
    return make_settings()


@pytest.fixture
def directory() -> InMemoryDirectory:
    """Provide an empty in-memory directory."""
    return InMemoryDirectory()


@pytest.fixture
def store() -> MemoryCacheStore:
    """Provide an empty in-memory cache store."""
    return MemoryCacheStore()


@pytest.fixture
def system(
    directory: InMemoryDirectory,
    store: MemoryCacheStore,
    settings: Settings,
) -> PermissionSystem:
    """Provide a permission system over the in-memory directory and store."""
    return create_permission_system(directory, store=store, settings=settings)


@pytest.fixture
def manager(system: PermissionSystem) -> PermissionManager:
    """Provide the system's manager."""
    return system.manager


@pytest.fixture
def checker(system: PermissionSystem) -> PermissionChecker:
    """Provide the system's checker."""
    return system.checker


# ============================================================
# Database Fixtures
# ============================================================


@pytest.fixture
async def sql_directory() -> AsyncGenerator[SqlAlchemyDirectory, None]:
    """Provide a SQLAlchemy directory over a freshly created schema."""
    engine = create_engine(make_settings(database_url=TEST_DATABASE_URL))
    await create_schema(engine)

    yield SqlAlchemyDirectory(create_session_factory(engine))

    await drop_schema(engine)
    await engine.dispose()


@pytest.fixture(params=["memory", "sqlalchemy"])
async def any_directory(request: pytest.FixtureRequest) -> AsyncGenerator[object, None]:
    """Provide each directory implementation in turn."""
    if request.param == "memory":
        yield InMemoryDirectory()
        return

    engine = create_engine(make_settings(database_url=TEST_DATABASE_URL))
    await create_schema(engine)

    yield SqlAlchemyDirectory(create_session_factory(engine))

    await drop_schema(engine)
    await engine.dispose()
