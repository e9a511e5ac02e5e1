"""Database connection management for the progression store"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool
from src.config import DATABASE_URL, DB_POOL_MAX_SIZE, DB_POOL_MIN_SIZE

logger = logging.getLogger(__name__)


class Database:
    """Async connection pool shared by the progression queries"""

    def __init__(
        self,
        connection_string: str = DATABASE_URL,
        min_size: int = DB_POOL_MIN_SIZE,
        max_size: int = DB_POOL_MAX_SIZE
    ):
        self.connection_string = connection_string
        self.min_size = min_size
        self.max_size = max_size
        self._pool: Optional[AsyncConnectionPool] = None

    @property
    def is_initialized(self) -> bool:
        return self._pool is not None

    async def init_pool(self) -> None:
        """Open the pool (idempotent)"""
        if self._pool is not None:
            return
        logger.info(f"Opening progression database pool ({self.min_size}-{self.max_size} connections)")
        self._pool = AsyncConnectionPool(
            self.connection_string,
            min_size=self.min_size,
            max_size=self.max_size,
            open=False
        )
        await self._pool.open()

    async def close_pool(self) -> None:
        """Close the pool"""
        if self._pool:
            logger.info("Closing progression database pool")
            await self._pool.close()
            self._pool = None

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """Borrow a connection whose rows come back as dicts"""
        if not self._pool:
            raise RuntimeError("Database pool not initialized, call init_pool() first")

        async with self._pool.connection() as conn:
            conn.row_factory = dict_row
            yield conn


# Global database instance
db = Database()
