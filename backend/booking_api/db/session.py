"""
Async engine, session factory and the request-scoped session dependency.
"""

from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from booking_api.core.config import get_settings

settings = get_settings()

# Execution option: open the transaction holding the database write lock.
# Only SQLite reads it; other backends lock rows with SELECT ... FOR UPDATE.
WRITE_LOCK = "booking_api_write_lock"

SQLITE_BUSY_TIMEOUT = 30


def enable_sqlite_write_locks(engine: AsyncEngine) -> AsyncEngine:
    """
    SQLite ignores FOR UPDATE, so a transaction started with the WRITE_LOCK
    execution option begins with BEGIN IMMEDIATE instead. That takes the
    database-wide write lock before the first read, and any other connection
    (in this process or another) asking for it waits in the busy handler.

    Other transactions keep the driver's deferred BEGIN, so plain reads
    never hold a lock a locked writer has to wait for.
    """
    if engine.dialect.name != "sqlite":
        return engine

    @event.listens_for(engine.sync_engine, "begin")
    def begin_immediate(conn):
        if conn.get_execution_options().get(WRITE_LOCK):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def create_engine_from_settings() -> AsyncEngine:
    kwargs = {"echo": settings.DEBUG, "pool_pre_ping": True}
    if settings.uses_sqlite:
        kwargs["connect_args"] = {"timeout": SQLITE_BUSY_TIMEOUT}
    else:
        kwargs.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
        )
    return enable_sqlite_write_locks(create_async_engine(settings.DATABASE_URL, **kwargs))


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False: ORM objects are serialized after the
    # transaction that produced them has committed
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = create_engine_from_settings()
SessionLocal = create_session_factory(engine)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return SessionLocal


async def get_db(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session; commit when the request succeeds, roll back otherwise."""
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
