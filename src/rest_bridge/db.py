"""Database engines, sessions and schema creation for the local store."""

from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from rest_bridge.config import settings


def create_engine(database_url: str | None = None, **kwargs: Any) -> AsyncEngine:
    """Async engine for ``database_url``, the configured store by default.

    SQLite connections emit their own BEGIN so that savepoints nest inside
    the session transaction.
    """
    engine = create_async_engine(
        database_url or settings.database_url,
        echo=settings.database_echo,
        **kwargs,
    )
    if engine.dialect.name == "sqlite":

        @event.listens_for(engine.sync_engine, "connect")
        def _disable_driver_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _begin(conn):
            conn.exec_driver_sql("BEGIN")

    return engine


def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory whose objects stay readable after commit."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(base: type[DeclarativeBase], database_url: str | None = None) -> list[str]:
    """Create the tables of every model registered on ``base``.

    Returns the names of the tables in ``base``'s metadata.
    """
    engine = create_engine(database_url)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(base.metadata.create_all)
    finally:
        await engine.dispose()
    return sorted(base.metadata.tables)
