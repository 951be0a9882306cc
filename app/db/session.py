from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings


def create_engine(database_url: str) -> AsyncEngine:
    return create_async_engine(database_url, pool_pre_ping=True, echo=False)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False: объекты остаются читаемыми после commit в async-коде.
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


engine = create_engine(settings.database_url)
SessionLocal = create_session_factory(engine)


async def get_db() -> AsyncIterator[AsyncSession]:
    # Одна сессия на запрос.
    async with SessionLocal() as session:
        yield session
