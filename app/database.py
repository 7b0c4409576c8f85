"""SQLAlchemy async engine and session factory.

The web service and the worker share one engine per process. When
DATABASE_URL is absent at import (unit tests, tooling) both ``engine`` and
``async_session_factory`` stay None and anything that needs a session goes
through ``require_session_factory()``, which fails loudly.

Usage:
    @router.get("/projects/{project_id}")
    async def read(project_id: str, db: AsyncSession = Depends(get_session)):
        return await db.get(Project, project_id)

    # Outside a request (workers, stores)
    async with require_session_factory()() as db, db.begin():
        project = await db.get(Project, project_id)
"""

import os
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.config import get_database_url

SQLITE_MEMORY_URL = "sqlite+aiosqlite:///:memory:"


def build_engine(url: str, **overrides: Any) -> AsyncEngine:
    """Create an engine with the production pool settings.

    Keyword overrides replace the pool defaults, e.g. for SQLite where
    pool sizing does not apply.
    """
    options: dict[str, Any] = {
        "pool_size": 10,
        "max_overflow": 5,
        "pool_pre_ping": True,
        "echo": os.getenv("DATABASE_ECHO", "").lower() == "true",
    }
    options.update(overrides)
    return create_async_engine(url, **options)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Loaded rows are read after commit (status documents, checkpoints)
    return async_sessionmaker(bind=bind, class_=AsyncSession, expire_on_commit=False)


engine: AsyncEngine | None = build_engine(get_database_url()) if os.getenv("DATABASE_URL") else None

async_session_factory: async_sessionmaker[AsyncSession] | None = (
    build_session_factory(engine) if engine is not None else None
)


def require_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the process-wide session factory.

    Raises:
        RuntimeError: If DATABASE_URL was not set when this module loaded.
    """
    if async_session_factory is None:
        raise RuntimeError("Database not configured. Set DATABASE_URL environment variable.")
    return async_session_factory


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request.

    Commits when the route returns normally, rolls back and re-raises
    otherwise.
    """
    session_factory = require_session_factory()
    async with session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        else:
            await session.commit()


def create_test_engine(
    database_url: str = SQLITE_MEMORY_URL,
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Engine and session factory for tests, without pool sizing."""
    test_engine = create_async_engine(database_url, echo=False)
    return test_engine, build_session_factory(test_engine)
