from typing import Any, Dict, List, Mapping, Optional, Protocol
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from criblink.core.config import settings
import logging

logger = logging.getLogger(__name__)


class QueryExecutor(Protocol):
    """Runs a parameterized SQL statement and returns its rows as dicts"""

    async def fetch_all(self, sql: str, params: Mapping[str, Any]) -> List[Dict[str, Any]]:
        ...


class SQLAlchemyQueryExecutor:
    """QueryExecutor backed by an async SQLAlchemy engine.

    Each call checks out its own connection so that independent statements
    (e.g. a page of listings and its COUNT) can run concurrently.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def fetch_all(self, sql: str, params: Mapping[str, Any]) -> List[Dict[str, Any]]:
        async with self.engine.connect() as conn:
            result = await conn.execute(text(sql), dict(params))
            return [dict(row._mapping) for row in result]


class DatabaseClient:
    """Async PostgreSQL engine wrapper for listing queries"""

    def __init__(self):
        self.engine: Optional[AsyncEngine] = None

    async def connect(self):
        """Create the engine and verify the connection"""
        try:
            if self.engine:
                await self.engine.dispose()

            self.engine = create_async_engine(
                settings.DATABASE_URL,
                echo=settings.SQL_ECHO,
                pool_size=settings.DB_POOL_SIZE,
                max_overflow=settings.DB_MAX_OVERFLOW,
                pool_pre_ping=True,
                pool_recycle=300,
            )

            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info("Connected to PostgreSQL")

        except Exception as e:
            logger.error(f"Failed to connect to PostgreSQL: {e}")
            raise

    async def disconnect(self):
        """Dispose of the engine and its pool"""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            logger.info("Disconnected from PostgreSQL")

    async def health_check(self) -> bool:
        """Check if the database answers a trivial query"""
        try:
            if not self.engine:
                return False
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning(f"PostgreSQL health check failed: {e}")
            return False

    def pool_status(self) -> Optional[Dict[str, int]]:
        """Connection counts of the engine pool, None before connect()"""
        if not self.engine:
            return None
        pool = self.engine.pool
        return {
            "size": pool.size(),
            "checked_in": pool.checkedin(),
            "checked_out": pool.checkedout(),
            "overflow": pool.overflow(),
        }

    async def status(self) -> Dict[str, Any]:
        """Health and pool usage, as reported by /health"""
        if not self.engine:
            return {"status": "disconnected", "pool": None}
        healthy = await self.health_check()
        return {
            "status": "healthy" if healthy else "unhealthy",
            "pool": self.pool_status(),
        }

    def get_executor(self) -> SQLAlchemyQueryExecutor:
        if not self.engine:
            raise RuntimeError("Database engine is not initialised; call connect() first")
        return SQLAlchemyQueryExecutor(self.engine)


# Global database client instance
db_client = DatabaseClient()


async def get_query_executor() -> QueryExecutor:
    """Get a query executor bound to the shared engine"""
    if not db_client.engine:
        await db_client.connect()
    return db_client.get_executor()
