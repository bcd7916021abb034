"""
Async Postgres helpers built on asyncpg.

A ``Database`` owns one lazily created connection pool. It is constructed
explicitly from settings and handed to whatever needs it, so tests never
touch a real pool.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import asyncpg

from src.config import DatabaseSettings

logger = logging.getLogger(__name__)


class Database:
    """Thin wrapper around an asyncpg pool."""

    def __init__(self, dsn: str, min_size: int = 1, max_size: int = 5):
        self._dsn = dsn
        self._min_size = min_size
        self._max_size = max_size
        self._pool: Optional[asyncpg.Pool] = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: DatabaseSettings) -> Optional["Database"]:
        if not settings.dsn:
            return None
        return cls(
            settings.dsn,
            min_size=settings.database_pool_min_size,
            max_size=settings.database_pool_max_size,
        )

    async def get_pool(self) -> asyncpg.Pool:
        if self._pool is not None:
            return self._pool

        async with self._lock:
            if self._pool is None:
                # PgBouncer-style poolers break prepared statements; keep the
                # statement cache off for both direct and pooled URLs.
                self._pool = await asyncpg.create_pool(
                    dsn=self._dsn,
                    min_size=self._min_size,
                    max_size=self._max_size,
                    statement_cache_size=0,
                )
                logger.info(
                    "Postgres pool initialized (min=%s max=%s)",
                    self._min_size,
                    self._max_size,
                )
        return self._pool

    async def fetchrow(self, query: str, *args):
        pool = await self.get_pool()
        async with pool.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args):
        pool = await self.get_pool()
        async with pool.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def execute(self, query: str, *args):
        pool = await self.get_pool()
        async with pool.acquire() as conn:
            return await conn.execute(query, *args)

    async def close(self) -> None:
        """Close the pool (used during graceful shutdown)."""
        if self._pool is None:
            return
        try:
            await self._pool.close()
        finally:
            self._pool = None
