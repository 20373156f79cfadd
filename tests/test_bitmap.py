import asyncio

import pytest

from merkle_airdrop.claim.bitmap import WORD_SIZE, InMemoryClaimBitmap, word_position
from merkle_airdrop.claim.leaf_encoder import MAX_UINT256
from merkle_airdrop.errors import AlreadyClaimed


class TestWordPosition:

    def test_positions(self):
        assert word_position(0) == (0, 1)
        assert word_position(255) == (0, 1 << 255)
        assert word_position(256) == (1, 1)
        assert word_position(87059) == (87059 // WORD_SIZE, 1 << (87059 % WORD_SIZE))

    @pytest.mark.parametrize("allocation_id", [-1, MAX_UINT256 + 1, "1"])
    def test_out_of_range(self, allocation_id):
        with pytest.raises(ValueError):
            word_position(allocation_id)


class TestInMemoryClaimBitmap:

    async def test_set_then_claimed(self):
        bitmap = InMemoryClaimBitmap()
        assert await bitmap.is_claimed(7) is False
        async with bitmap.set_claimed(7):
            pass
        assert await bitmap.is_claimed(7) is True
        assert await bitmap.is_claimed(6) is False

    async def test_second_set_fails(self):
        bitmap = InMemoryClaimBitmap()
        async with bitmap.set_claimed(3):
            pass
        with pytest.raises(AlreadyClaimed):
            async with bitmap.set_claimed(3):
                pass

    async def test_bit_visible_inside_block(self):
        bitmap = InMemoryClaimBitmap()
        async with bitmap.set_claimed(1):
            assert await bitmap.is_claimed(1) is True

    async def test_failure_reverts_only_own_bit(self):
        bitmap = InMemoryClaimBitmap()
        async with bitmap.set_claimed(10):
            pass

        with pytest.raises(RuntimeError):
            async with bitmap.set_claimed(11):
                raise RuntimeError("transfer failed")

        assert await bitmap.is_claimed(10) is True
        assert await bitmap.is_claimed(11) is False
        async with bitmap.set_claimed(11):
            pass
        assert bitmap.words() == {0: (1 << 10) | (1 << 11)}

    async def test_sparse_ids(self):
        bitmap = InMemoryClaimBitmap()
        for allocation_id in (0, 300, 2**200, MAX_UINT256):
            async with bitmap.set_claimed(allocation_id):
                pass
            assert await bitmap.is_claimed(allocation_id) is True
        assert len(bitmap.words()) == 4

    async def test_concurrent_set_single_winner(self):
        bitmap = InMemoryClaimBitmap()
        winners = []

        async def attempt(n):
            async with bitmap.set_claimed(42):
                await asyncio.sleep(0)
                winners.append(n)

        results = await asyncio.gather(*[attempt(n) for n in range(10)], return_exceptions=True)

        assert len(winners) == 1
        assert sum(isinstance(r, AlreadyClaimed) for r in results) == 9

    async def test_locks_released_once_settled(self):
        bitmap = InMemoryClaimBitmap()
        for allocation_id in (0, 2**100, 2**200):
            async with bitmap.set_claimed(allocation_id):
                assert bitmap.pending_words() == 1
        with pytest.raises(AlreadyClaimed):
            async with bitmap.set_claimed(0):
                pass
        with pytest.raises(RuntimeError):
            async with bitmap.set_claimed(2**150):
                raise RuntimeError("transfer failed")

        assert bitmap.pending_words() == 0
        assert sorted(bitmap.words()) == [0, 2**100 // WORD_SIZE, 2**200 // WORD_SIZE]
        assert len(bitmap._words) == 3

    async def test_locks_released_after_contention(self):
        bitmap = InMemoryClaimBitmap()

        async def attempt():
            async with bitmap.set_claimed(8):
                await asyncio.sleep(0)

        await asyncio.gather(*[attempt() for _ in range(5)], return_exceptions=True)
        assert bitmap.pending_words() == 0
        assert await bitmap.is_claimed(8) is True

    async def test_waiter_retries_after_rollback(self):
        bitmap = InMemoryClaimBitmap()

        async def failing():
            async with bitmap.set_claimed(5):
                await asyncio.sleep(0)
                raise RuntimeError("boom")

        async def succeeding():
            async with bitmap.set_claimed(5):
                pass

        results = await asyncio.gather(failing(), succeeding(), return_exceptions=True)

        assert isinstance(results[0], RuntimeError)
        assert results[1] is None
        assert await bitmap.is_claimed(5) is True
