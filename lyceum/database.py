"""
Async engine, session factory and the request-scoped ``get_db`` dependency.

SQLite (aiosqlite) is used for development and tests; anything else is
assumed to be a pooled server database such as PostgreSQL (asyncpg).
"""

from typing import Any, AsyncGenerator, Dict

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from lyceum.config import get_settings

SQLITE_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA foreign_keys=ON",
    "PRAGMA busy_timeout=5000",
)


def _engine_options(url: str, echo: bool) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        # One connection per session; concurrent requests never share a SQLite transaction
        return {
            "echo": echo,
            "connect_args": {"check_same_thread": False},
            "poolclass": NullPool,
        }
    return {"echo": echo, "pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    new_engine = create_async_engine(url, **_engine_options(url, echo))

    if url.startswith("sqlite"):
        @event.listens_for(new_engine.sync_engine, "connect")
        def _apply_pragmas(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            for pragma in SQLITE_PRAGMAS:
                cursor.execute(pragma)
            cursor.close()

    return new_engine


_settings = get_settings()
engine = build_engine(_settings.database_url, echo=_settings.debug)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One session per request: commit when the handler returns, roll back if it raises."""
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        else:
            await session.commit()


async def init_db() -> None:
    # The models package import registers every table on Base.metadata
    from lyceum.kernel.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
