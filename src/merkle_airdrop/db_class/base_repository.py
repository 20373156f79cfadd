import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import aiomysql

from .mysql_connector import MySQLConnector

logger = logging.getLogger(__name__)


class BaseRepository:
    """
    Base repository class.
    Child repositories hold only SQL; connections and transactions come from here.
    """
    def __init__(self, connector: MySQLConnector):
        """
        :param connector: MySQLConnector that owns the shared pool.
        """
        self._connector = connector
        self._pool: Optional[aiomysql.Pool] = None

    @property
    async def pool(self) -> aiomysql.Pool:
        if self._pool is None:
            self._pool = await self._connector.get_pool()
        return self._pool

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiomysql.Connection]:
        async with (await self.pool).acquire() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiomysql.Connection]:
        """
        Commits when the block exits normally, rolls back on any exception
        (cancellation included) and re-raises it.
        """
        async with self.connection() as conn:
            await conn.begin()
            try:
                yield conn
            except BaseException:
                await conn.rollback()
                logger.warning(f"{type(self).__name__}: transaction rolled back.")
                raise
            await conn.commit()
