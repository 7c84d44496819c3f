"""
Database connection management.

The relational store (SQLite or PostgreSQL) is the only critical dependency:
without it the system cannot start. Uniqueness of emails, Google subject ids,
website domains and website ids is enforced by its unique indexes.
"""

from typing import AsyncIterator
import logging
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Owns the async engine and session factory."""

    def __init__(self):
        self.available = False
        self.engine = None
        self.session_factory = None

    async def initialize(self):
        """Initialize the database connection and create tables"""
        self.available = await self._init_engine()
        if not self.available:
            from helioscribe.common.config import settings
            db_type = "SQLite" if settings.database_type == "sqlite" else "PostgreSQL"
            raise RuntimeError(
                f"{db_type} is not available. This is a critical dependency. "
                f"Check your configuration and database setup."
            )
        await self.create_tables()

    async def _init_engine(self) -> bool:
        """Initialize database connection (PostgreSQL or SQLite)"""
        from helioscribe.common.config import settings

        db_type = "SQLite" if settings.database_type == "sqlite" else "PostgreSQL"
        try:
            from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
            from sqlalchemy import text

            engine_kwargs = {
                "echo": settings.debug and settings.log_level.upper() == "DEBUG",
            }
            if settings.database_type == "sqlite":
                from pathlib import Path
                Path(settings.sqlite_path).parent.mkdir(parents=True, exist_ok=True)
            else:
                engine_kwargs.update({
                    "pool_size": 10,
                    "max_overflow": 20,
                    "pool_pre_ping": True,
                })

            self.engine = create_async_engine(settings.database_url, **engine_kwargs)
            self.session_factory = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            # 测试连接
            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))

            logger.info(f"✓ {db_type} connection established")
            return True
        except Exception as e:
            logger.error(f"✗ {db_type} connection failed: {e}")
            return False

    async def create_tables(self):
        from helioscribe.common.base import Base
        # 导入所有模型确保它们被注册
        from helioscribe.domains.user import models as user_models  # noqa: F401
        from helioscribe.domains.website import models as website_models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"Tables ready: {', '.join(sorted(Base.metadata.tables.keys()))}")

    async def dispose(self):
        if self.engine is not None:
            await self.engine.dispose()
            self.available = False

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[AsyncSession]:
        """
        Get a database session

        Usage:
            async with db_manager.get_session() as session:
                result = await session.execute(stmt)
        """
        if not self.available:
            raise RuntimeError("Database is not available")

        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise


# Global database manager instance
db_manager = DatabaseManager()


async def get_db_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding one session per request."""
    async with db_manager.get_session() as session:
        yield session
