"""
Database connection configuration using SQLAlchemy 2.0 async.

The engine is owned by a ``Database`` handle created by the application at
startup and released at shutdown; request handlers reach it through the
``get_db`` dependency instead of a module-level global.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from wastewatch.config.settings import Settings, get_settings


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def get_database_url(settings: Optional[Settings] = None) -> str:
    """Build the async database URL from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql+asyncpg://{settings.postgres_user}:{settings.postgres_password}"
        f"@{settings.postgres_host}:{settings.postgres_port}/{settings.postgres_database}"
    )


class Database:
    """Owns the async engine and session factory for one process."""

    def __init__(self, url: str, pool_size: int = 10, echo: bool = False):
        """
        Create the engine. No connection is opened until first use.

        Args:
            url: SQLAlchemy async database URL
            pool_size: Number of pooled connections
            echo: Log every SQL statement
        """
        self.engine: AsyncEngine = create_async_engine(
            url,
            pool_size=pool_size,
            max_overflow=10,
            pool_pre_ping=True,  # Verify connections before using them
            echo=echo,
        )
        self.session_maker: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "Database":
        settings = settings or get_settings()
        return cls(get_database_url(settings), pool_size=settings.postgres_pool_max_size)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Async context manager for database sessions.

        Usage:
            async with database.session() as session:
                result = await session.execute(select(Model))
        """
        async with self.session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_tables(self) -> None:
        """Create all tables that do not exist yet."""
        # Register the models on Base.metadata
        import wastewatch.database.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """Close every pooled connection."""
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for database sessions.

    Usage:
        @router.get("/items/{item_id}")
        async def get_item(item_id: UUID, db: AsyncSession = Depends(get_db)):
            repo = ItemRepository(db)
            return await repo.get_by_id(item_id)
    """
    database: Database = request.app.state.database
    async with database.session() as session:
        yield session
