import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from ..db_class.repositories.claim_bitmap_repository import ClaimBitmapRepository
from ..errors import AlreadyClaimed
from .bitmap import AbstractClaimBitmap, word_position

logger = logging.getLogger(__name__)


class MySQLClaimBitmap(AbstractClaimBitmap):
    """
    Durable claim bitmap for multi-process deployments.

    The check-and-set and everything inside the `async with` body run in
    one MySQL transaction holding the word's row lock, so concurrent
    claims for ids in the same word are serialized by the database.
    A failure anywhere rolls the bit back.
    """

    def __init__(self, repository: ClaimBitmapRepository, merkle_root: bytes):
        self._repository = repository
        self._root = "0x" + merkle_root.hex()

    async def is_claimed(self, allocation_id: int) -> bool:
        index, mask = word_position(allocation_id)
        async with self._repository.connection() as conn:
            word = await self._repository.get_word(conn, self._root, index)
        return bool(word & mask)

    @asynccontextmanager
    async def set_claimed(self, allocation_id: int) -> AsyncIterator[None]:
        index, mask = word_position(allocation_id)
        async with self._repository.transaction() as conn:
            word = await self._repository.lock_word(conn, self._root, index)
            if word & mask:
                raise AlreadyClaimed(f"Allocation {allocation_id} is already claimed")
            await self._repository.update_word(conn, self._root, index, word | mask)
            yield
        logger.info(f"Claim bit for allocation {allocation_id} committed.")
