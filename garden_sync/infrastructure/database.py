import os
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import SQLModel
from contextlib import asynccontextmanager
from sqlalchemy.ext.asyncio.engine import create_async_engine, AsyncEngine
import structlog

logger = structlog.get_logger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./garden.db")

engine: AsyncEngine = create_async_engine(DATABASE_URL, echo=False)


async def init_db(bind: AsyncEngine = engine):
    # tables must be registered on the metadata before create_all
    from garden_sync.UAA import models as _user_models  # noqa: F401
    from garden_sync.models import garden, integration, metric_snapshot  # noqa: F401

    try:
        async with bind.begin() as connection:
            await connection.run_sync(SQLModel.metadata.create_all)
    except Exception as e:
        logger.exception("db_init_failed", error=str(e))
        raise


def session_scope(bind: AsyncEngine = engine):
    """
    Build a session factory bound to `bind`.
    Objects stay usable after commit (expire_on_commit=False) since lazy refresh is not possible in async code.
    """

    @asynccontextmanager
    async def factory() -> AsyncSession:
        async with AsyncSession(bind, expire_on_commit=False) as session:
            yield session

    return factory


get_session = session_scope()
