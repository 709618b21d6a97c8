"""
Database configuration and connection management
数据库配置和连接管理 - 异步引擎、会话工厂和健康检查
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.exc import DisconnectionError, OperationalError
from sqlalchemy import text
from chameleon.core.config import settings
import logging
import time
from typing import Optional
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


class DatabaseManager:
    """Database manager with health check and transaction management"""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or settings.DATABASE_URL
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None
        self._health_check_interval = 30
        self._last_health_check = 0

    async def initialize(self):
        """Initialize database engine and session factory"""
        try:
            engine_kwargs = {"echo": False, "pool_pre_ping": True}
            if not self.database_url.startswith("sqlite"):
                engine_kwargs["pool_recycle"] = settings.DB_POOL_RECYCLE

            self.engine = create_async_engine(self.database_url, **engine_kwargs)

            self.session_factory = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=True
            )

            await self._test_connection()
            logger.info("Database manager initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize database manager: {e}")
            raise

    async def _test_connection(self) -> bool:
        """Test database connection health"""
        try:
            if not self.engine:
                return False

            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))

            self._last_health_check = time.time()
            return True

        except (DisconnectionError, OperationalError) as e:
            logger.warning(f"Database connection test failed: {e}")
            return False

    async def health_check(self) -> bool:
        """Perform periodic health check"""
        if time.time() - self._last_health_check < self._health_check_interval:
            return True
        return await self._test_connection()

    @asynccontextmanager
    async def get_session(self):
        """Get database session with transaction management"""
        if not self.session_factory:
            raise RuntimeError("Database manager not initialized")

        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Database transaction error: {e}")
            raise
        finally:
            await session.close()

    async def create_all(self):
        """Create tables for all registered models"""
        # 导入模型以注册到 metadata
        from chameleon.models import room, player  # noqa

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self):
        """Close database connections"""
        if self.engine:
            await self.engine.dispose()
            logger.info("Database connections closed")


# Global database manager instance
db_manager = DatabaseManager()


async def init_db():
    """Initialize database connection and create tables if needed"""
    try:
        await db_manager.initialize()
        await db_manager.create_all()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


async def close_db():
    """Close database connections"""
    await db_manager.close()


async def health_check() -> dict:
    """Database health check for monitoring"""
    try:
        is_healthy = await db_manager.health_check()
        return {
            "status": "healthy" if is_healthy else "unhealthy",
            "last_health_check": db_manager._last_health_check
        }
    except Exception as e:
        return {
            "status": "error",
            "error": str(e)
        }
