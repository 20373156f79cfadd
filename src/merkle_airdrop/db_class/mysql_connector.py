import asyncio
import logging
from typing import Optional

import aiomysql

from .. import config

logger = logging.getLogger(__name__)


class MySQLConnector:
    """
    Owns a single lazily created aiomysql pool shared by all repositories.
    """

    def __init__(self, minsize: int = 1, maxsize: int = 10, autocommit: bool = False):
        self._minsize = minsize
        self._maxsize = maxsize
        self._autocommit = autocommit
        self._pool: Optional[aiomysql.Pool] = None
        self._lock = asyncio.Lock()

    async def init_pool(self) -> aiomysql.Pool:
        async with self._lock:
            if self._pool is None:
                logger.info(f"Creating MySQL pool {config.MYSQL_HOST}:{config.MYSQL_PORT}/{config.MYSQL_DB}")
                self._pool = await aiomysql.create_pool(
                    host=config.MYSQL_HOST,
                    port=config.MYSQL_PORT,
                    user=config.MYSQL_USER,
                    password=config.MYSQL_PASSWORD,
                    db=config.MYSQL_DB,
                    minsize=self._minsize,
                    maxsize=self._maxsize,
                    autocommit=self._autocommit,
                )
            return self._pool

    async def get_pool(self) -> aiomysql.Pool:
        if self._pool is None:
            return await self.init_pool()
        return self._pool

    async def close_pool(self):
        if self._pool is not None:
            self._pool.close()
            await self._pool.wait_closed()
            self._pool = None
            logger.info("MySQL pool closed.")
