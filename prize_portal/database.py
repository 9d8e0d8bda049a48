"""
prize_portal/database.py
Async engine, session factory and table creation.
"""
import logging
from contextlib import asynccontextmanager

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from prize_portal.config import get_settings
from prize_portal.exceptions import StorageUnavailableError
from prize_portal.orm.base import Base
import prize_portal.orm  # registers every model on Base.metadata

logger = logging.getLogger(__name__)


def build_engine(database_url: str):
    """
    Create an async engine with pool settings suited to the backend.
    SQLite gets a busy timeout so concurrent writers wait instead of failing.
    """
    if "sqlite" in database_url.lower():
        return create_async_engine(
            database_url,
            echo=False,
            pool_pre_ping=True,
            connect_args={
                "timeout": 30.0,  # SQLite busy timeout in seconds
            }
        )

    return create_async_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
        pool_size=20,
        max_overflow=30,
        pool_timeout=30,
        pool_recycle=3600,
    )


def build_session_factory(bind) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


DATABASE_URL = get_settings().database_url

engine = build_engine(DATABASE_URL)
AsyncSessionLocal = build_session_factory(engine)


async def get_db():
    """Dependency for getting async database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


def is_storage_unavailable(error: Exception) -> bool:
    """True for errors meaning the store could not be reached, as opposed to a rejected statement."""
    if isinstance(error, (OperationalError, InterfaceError)):
        return True
    return isinstance(error, DBAPIError) and error.connection_invalidated


@asynccontextmanager
async def storage_guard(operation: str):
    """
    Translate connectivity failures into StorageUnavailableError.
    Constraint violations and other statement errors pass through untouched.
    """
    try:
        yield
    except DBAPIError as e:
        if is_storage_unavailable(e):
            logger.error(f"Storage unavailable during {operation}: {type(e.orig).__name__}")
            raise StorageUnavailableError() from e
        raise


async def init_db(bind=None):
    """Create all tables. Idempotent."""
    target = bind or engine
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialized")


async def close_db():
    await engine.dispose()
    logger.info("Database connections closed")
