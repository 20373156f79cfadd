import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Tuple

from ..errors import AlreadyClaimed
from .leaf_encoder import MAX_UINT256

logger = logging.getLogger(__name__)

WORD_SIZE = 256


def word_position(allocation_id: int) -> Tuple[int, int]:
    """Returns (word index, bit mask) for an allocation id."""
    if not isinstance(allocation_id, int) or not 0 <= allocation_id <= MAX_UINT256:
        raise ValueError(f"allocation_id out of range: {allocation_id!r}")
    return allocation_id // WORD_SIZE, 1 << (allocation_id % WORD_SIZE)


class AbstractClaimBitmap(ABC):
    """
    Packed bit-per-allocation record of claimed ids.
    The only way to flip a bit is `set_claimed`, which checks and sets
    under a guard keyed by the id's word.
    """

    @abstractmethod
    async def is_claimed(self, allocation_id: int) -> bool:
        pass

    @abstractmethod
    def set_claimed(self, allocation_id: int):
        """
        Async context manager. On enter the bit is checked and set
        (raising AlreadyClaimed if it was set). If the body raises,
        the bit is reverted and the exception propagates.
        """
        pass


class InMemoryClaimBitmap(AbstractClaimBitmap):

    def __init__(self):
        self._words: Dict[int, int] = {}
        # Locks exist only while some claim on the word holds or awaits them.
        self._locks: Dict[int, asyncio.Lock] = {}
        self._lock_users: Dict[int, int] = {}

    async def is_claimed(self, allocation_id: int) -> bool:
        index, mask = word_position(allocation_id)
        return bool(self._words.get(index, 0) & mask)

    @asynccontextmanager
    async def set_claimed(self, allocation_id: int) -> AsyncIterator[None]:
        index, mask = word_position(allocation_id)
        lock = self._locks.setdefault(index, asyncio.Lock())
        self._lock_users[index] = self._lock_users.get(index, 0) + 1
        try:
            async with lock:
                word = self._words.get(index, 0)
                if word & mask:
                    raise AlreadyClaimed(f"Allocation {allocation_id} is already claimed")
                self._words[index] = word | mask
                try:
                    yield
                except BaseException:
                    # Other bits of the word are guarded by the same lock, so clearing ours is safe.
                    self._words[index] &= ~mask
                    if not self._words[index]:
                        del self._words[index]
                    logger.warning(f"Claim of allocation {allocation_id} aborted, bit reverted.")
                    raise
        finally:
            self._lock_users[index] -= 1
            if not self._lock_users[index]:
                del self._lock_users[index]
                del self._locks[index]

    def pending_words(self) -> int:
        """Number of words with a claim in flight."""
        return len(self._locks)

    def words(self) -> Dict[int, int]:
        """Snapshot of the non-zero words, for inspection."""
        return {i: w for i, w in self._words.items() if w}
