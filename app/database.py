"""Database configuration and connection management."""

from typing import Any

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.config import settings


def async_database_url(url: str) -> str:
    """Rewrite a sync driver URL to its async driver."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def create_engine_for(url: str, **kwargs: Any) -> AsyncEngine:
    """
    Create an async engine with settings suited to the backend.

    Args:
        url: Database URL (sync or async driver)
        **kwargs: Extra engine options, overriding the defaults

    Returns:
        Configured async engine
    """
    url = async_database_url(url)

    if url.startswith("sqlite"):
        options: dict[str, Any] = {"echo": settings.debug}
    else:
        options = {
            "echo": settings.debug,
            "pool_pre_ping": True,
            "pool_size": 10,
            "max_overflow": 20,
            "pool_recycle": 3600,
            "connect_args": {
                "server_settings": {
                    "application_name": settings.app_name,
                },
            },
        }
    options.update(kwargs)

    async_engine = create_async_engine(url, **options)

    if url.startswith("sqlite"):
        event.listen(async_engine.sync_engine, "connect", set_sqlite_pragma)

    return async_engine


def set_sqlite_pragma(dbapi_conn: Any, connection_record: Any) -> None:
    """Enforce foreign keys on SQLite connections."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# Create async engine with connection pooling
engine: AsyncEngine = create_engine_for(settings.database_url)

# Async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def check_database_connection() -> bool:
    """Check if database connection is healthy."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
