"""Database engine, session factory and request-scoped sessions."""

from collections.abc import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from crawler_api.config import get_settings


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


def is_sqlite(database_url: str) -> bool:
    return database_url.startswith("sqlite")


def _apply_sqlite_pragmas(dbapi_connection, connection_record) -> None:
    """WAL for concurrent readers; foreign keys so categories cascade with their site."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=30000")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine, tuning SQLite connections for the crawl tables."""
    connect_args = {}
    if is_sqlite(database_url):
        connect_args = {
            "timeout": 30,  # Wait up to 30 seconds for lock
            "check_same_thread": False,
        }

    engine = create_async_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        connect_args=connect_args,
    )
    if is_sqlite(database_url):
        event.listen(engine.sync_engine, "connect", _apply_sqlite_pragmas)
    return engine


settings = get_settings()

engine = build_engine(settings.database_url, echo=settings.debug)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def create_tables(target: AsyncEngine = engine) -> None:
    """Create crawl_site and categories if they do not exist."""
    # Registers the tables on Base.metadata
    from crawler_api.db import models  # noqa: F401

    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions.

    Commits when the request succeeds; any error rolls back every write
    made during the request.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
