"""
Database configuration and session management
Uses SQLAlchemy with async support
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool, StaticPool
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
import logging

from .config import Settings, settings as default_settings
from notification_service.models.base import create_tables

logger = logging.getLogger(__name__)


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine with pool limits taken from settings"""
    url = settings.database_url_async

    if url.startswith("sqlite"):
        # SQLite doesn't support connection pooling parameters; an in-memory
        # database must share one connection or every session sees an empty db
        if ":memory:" in url or url.endswith("://"):
            return create_async_engine(
                url,
                echo=settings.DATABASE_ECHO,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        return create_async_engine(
            url,
            echo=settings.DATABASE_ECHO,
            poolclass=NullPool,
        )

    # PostgreSQL: idle connections kept = pool_size, the rest are overflow
    max_open = max(settings.DATABASE_MAX_OPEN_CONNS, 1)
    pool_size = max(min(settings.DATABASE_MAX_IDLE_CONNS, max_open), 1)
    recycle = min(settings.DATABASE_CONN_MAX_LIFETIME, settings.DATABASE_CONN_MAX_IDLE_TIME)

    return create_async_engine(
        url,
        echo=settings.DATABASE_ECHO,
        pool_size=pool_size,
        max_overflow=max_open - pool_size,
        pool_timeout=settings.DATABASE_POOL_TIMEOUT,
        pool_recycle=recycle,
        pool_pre_ping=True,  # Verify connections before use
    )


class Database:
    """Engine and session factory holder"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None

    async def connect(self, init_tables: bool = True) -> None:
        """Create the engine and, optionally, the tables"""
        self.engine = build_engine(self.settings)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        if init_tables:
            await self.init_db()
        logger.info("Database connection established")

    async def init_db(self) -> None:
        """Initialize database tables"""
        async with self.engine.begin() as conn:
            await conn.run_sync(create_tables)
        logger.info("Database tables created successfully")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Context manager for database sessions
        Commits on success, rolls back on any error
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def disconnect(self) -> None:
        """Close database connections"""
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None
            logger.info("Database connections closed")
