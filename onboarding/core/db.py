from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from onboarding.core.config import settings


def _connect_args(url: str) -> dict:
    # asyncpg enforces a per-statement timeout; other drivers get their own defaults
    if url.startswith("postgresql+asyncpg"):
        return {"command_timeout": settings.db_command_timeout_seconds}
    return {}


engine = create_async_engine(
    settings.database_url,
    pool_pre_ping=True,
    pool_timeout=settings.db_pool_timeout_seconds,
    connect_args=_connect_args(settings.database_url),
)

SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def get_db() -> AsyncIterator[AsyncSession]:
    async with SessionLocal() as session:
        yield session
