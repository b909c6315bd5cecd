from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config.settings import Settings
from .errors import TRANSLATED_ERRORS, to_query_error
from .models import Base


def create_engine(settings: Settings) -> AsyncEngine:
    """
    Build the AsyncEngine for the document store.

    Nothing is created at import time; the application lifespan owns the engine
    and disposes it on shutdown.
    """
    return create_async_engine(
        settings.DATABASE_ENGINE_URL,
        echo=settings.SQLALCHEMY_ECHO,
        pool_pre_ping=True,  # Enables connection health checks
    )


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def create_schema(engine: AsyncEngine) -> None:
    """
    Create the store tables if they do not exist yet.

    Raises:
        QueryError: "ECONNRESET" when the database cannot be reached.
    """
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except TRANSLATED_ERRORS as exc:
        raise to_query_error(exc, "schema") from exc


async def drop_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
