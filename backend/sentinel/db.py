from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from .config import settings
from .errors import StoreUnavailable

engine: AsyncEngine = create_async_engine(settings.SENTINEL_DB_URL, echo=False, future=True)

# Canonical async session factory
AsyncSessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def ping_store(session_factory) -> None:
    """Raise StoreUnavailable if the backing store cannot answer a trivial query."""
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
    except (OperationalError, DBAPIError, OSError) as e:
        raise StoreUnavailable(f"backing store unreachable: {e}") from e
