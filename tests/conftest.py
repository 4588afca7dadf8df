"""Shared fixtures for garden_sync tests."""

from datetime import datetime

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from garden_sync.infrastructure.database import init_db, session_scope
from tests.helpers import FIXED_NOW


@pytest.fixture
async def engine(tmp_path):
    """Fresh SQLite database file per test, schema created through init_db."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'garden.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Session factory bound to the test engine, same shape as the application's."""
    return session_scope(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW
