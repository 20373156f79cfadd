import logging
from typing import Optional
import aiomysql
from ..base_repository import BaseRepository

logger = logging.getLogger(__name__)

ZERO_WORD = bytes(32)

CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS airdrop_claim_bitmap (
        merkle_root CHAR(66) NOT NULL,
        word_index VARCHAR(78) NOT NULL,
        word BINARY(32) NOT NULL,
        updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP,
        PRIMARY KEY (merkle_root, word_index)
    ) ENGINE=InnoDB
"""


class ClaimBitmapRepository(BaseRepository):
    """
    SQL for the persisted claim bitmap.
    One row per (merkle_root, word_index); each word holds 256 claim bits
    as a big-endian BINARY(32). Word indexes go up to 2**248, so they are
    stored as decimal strings.
    """

    async def ensure_schema(self, conn: aiomysql.Connection):
        async with conn.cursor() as cursor:
            await cursor.execute(CREATE_TABLE_SQL)

    async def get_word(self, conn: aiomysql.Connection, merkle_root: str, word_index: int) -> int:
        """Plain read, no lock."""
        sql = """
            SELECT word FROM airdrop_claim_bitmap
            WHERE merkle_root = %s AND word_index = %s
        """
        async with conn.cursor(aiomysql.DictCursor) as cursor:
            await cursor.execute(sql, (merkle_root, str(word_index)))
            row: Optional[dict] = await cursor.fetchone()
        return self._word_to_int(row)

    async def lock_word(self, conn: aiomysql.Connection, merkle_root: str, word_index: int) -> int:
        """
        Makes sure the word row exists and locks it (SELECT ... FOR UPDATE)
        until the caller's transaction ends. Must run inside a transaction.
        """
        insert_sql = """
            INSERT IGNORE INTO airdrop_claim_bitmap (merkle_root, word_index, word)
            VALUES (%s, %s, %s)
        """
        select_sql = """
            SELECT word FROM airdrop_claim_bitmap
            WHERE merkle_root = %s AND word_index = %s
            FOR UPDATE
        """
        params = (merkle_root, str(word_index))
        async with conn.cursor(aiomysql.DictCursor) as cursor:
            await cursor.execute(insert_sql, (*params, ZERO_WORD))
            await cursor.execute(select_sql, params)
            row = await cursor.fetchone()
        return self._word_to_int(row)

    async def update_word(self, conn: aiomysql.Connection, merkle_root: str, word_index: int, word: int):
        sql = """
            UPDATE airdrop_claim_bitmap SET word = %s
            WHERE merkle_root = %s AND word_index = %s
        """
        async with conn.cursor() as cursor:
            await cursor.execute(sql, (word.to_bytes(32, 'big'), merkle_root, str(word_index)))

    @staticmethod
    def _word_to_int(row: Optional[dict]) -> int:
        if not row or row.get('word') is None:
            return 0
        return int.from_bytes(bytes(row['word']), 'big')
