"""Async database session management helpers."""

from typing import Any, AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from storefront.core.config import settings


def _engine_kwargs(url: str) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"echo": settings.DEBUG}
    if url.startswith("sqlite"):
        if ":memory:" in url:
            # one shared connection, otherwise every checkout sees an empty database
            kwargs.update(poolclass=StaticPool, connect_args={"check_same_thread": False})
        return kwargs
    kwargs.update(
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
    )
    return kwargs


engine = create_async_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))

SessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False)


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency that yields an async database session."""

    async with SessionLocal() as session:
        yield session


async def create_all() -> None:
    """Create missing tables for every registered model."""

    from storefront.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
