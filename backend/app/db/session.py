"""
Database session configuration.

Async SQLAlchemy engine and session factory. Shipments, catalog rows and
audit rows all live in the one database; nothing domain-related is cached
in process memory, so any number of workers can serve requests.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from backend.app.core.config import settings


def engine_options(database_url: str) -> Dict[str, Any]:
    """Pool sizing only applies to server databases, not SQLite."""
    options: Dict[str, Any] = {"echo": settings.db_echo, "pool_pre_ping": True}
    if not make_url(database_url).drivername.startswith("sqlite"):
        options["pool_size"] = settings.db_pool_size
        options["max_overflow"] = settings.db_max_overflow
    return options


engine = create_async_engine(settings.database_url, **engine_options(settings.database_url))

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


def utcnow() -> datetime:
    """Timezone-aware 'now' used for python-side column defaults."""
    return datetime.now(timezone.utc)


async def get_db():
    """
    FastAPI dependency for database sessions.

    Anything left uncommitted when the request fails is rolled back.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise

