"""Database engine, session factory and declarative base."""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from media_ingest.core.config import settings


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""

    pass


def _engine_kwargs(url: str) -> dict:
    kwargs: dict = {"echo": settings.DATABASE_ECHO}
    # SQLite (used in tests) has no connection pool sizing
    if not url.startswith("sqlite"):
        kwargs["pool_size"] = settings.DATABASE_POOL_SIZE
        kwargs["pool_pre_ping"] = True
    return kwargs


engine = create_async_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a database session.

    The session is closed when the request finishes. Services own their
    commits; anything left uncommitted is rolled back.
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise

