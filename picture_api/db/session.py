"""Database engine and session management."""

from typing import AsyncGenerator
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine

from picture_api.core.config import settings
from picture_api.core.logging_config import get_logger
from picture_api.db.base import Base


logger = get_logger(__name__)


def build_engine(database_url: str, busy_timeout: float = settings.DATABASE_BUSY_TIMEOUT) -> AsyncEngine:
    """Create an async engine.

    For SQLite the driver's own transaction handling is switched off and every
    transaction starts with BEGIN IMMEDIATE, so a unit of work holds the write
    lock from its first statement. Counts read by the position ledger then
    cannot go stale before the shifts that depend on them. Other writers wait
    up to `busy_timeout` seconds for the lock.
    """
    is_sqlite = database_url.startswith("sqlite")
    engine = create_async_engine(
        database_url,
        echo=settings.is_debug_mode,
        future=True,
        connect_args={"check_same_thread": False, "timeout": busy_timeout} if is_sqlite else {},
    )

    if is_sqlite:
        @event.listens_for(engine.sync_engine, "connect")
        def _disable_driver_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


engine = build_engine(settings.DATABASE_URL)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def init_models(target: AsyncEngine = engine) -> None:
    """Create missing tables. Schema migrations are out of scope."""
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database_schema_initialized", database_url=str(target.url))


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting an async database session (one per request)."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
