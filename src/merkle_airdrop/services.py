import asyncio
from . import config

from .claim.airdrop import Airdrop
from .claim.bitmap import AbstractClaimBitmap, InMemoryClaimBitmap
from .claim.mysql_bitmap import MySQLClaimBitmap

from .providers.clock import AbstractClock, SystemClock
from .providers.etherscan_block_clock import EtherscanBlockClock
from .providers.in_memory_token_ledger import InMemoryTokenLedger

from .db_class.mysql_connector import MySQLConnector
from .db_class.repositories.claim_bitmap_repository import ClaimBitmapRepository

"""
This file acts as a Service Locator.
It creates SINGLE INSTANCES of all shared services.
Any other file in the application can import this file
and access the already configured airdrop, ledger and storage.
"""

merkle_root = bytes.fromhex(config.AIRDROP_MERKLE_ROOT.removeprefix('0x'))

# --- Database (only used by the mysql bitmap backend) ---
db_connector = MySQLConnector(
    minsize=config.MYSQL_POOL_MINSIZE,
    maxsize=config.MYSQL_POOL_MAXSIZE,
    autocommit=False
)
repo_claim_bitmap = ClaimBitmapRepository(db_connector)

# --- Claim bitmap ---
claim_bitmap: AbstractClaimBitmap
if config.CLAIM_BITMAP_BACKEND == 'mysql':
    claim_bitmap = MySQLClaimBitmap(repo_claim_bitmap, merkle_root)
else:
    claim_bitmap = InMemoryClaimBitmap()

# --- Clock ---
clock: AbstractClock
if config.CLOCK_BACKEND == 'etherscan':
    clock = EtherscanBlockClock(
        base_url=config.ETHERSCAN_API_URL,
        api_key=config.ETHERSCAN_API_KEY,
        chain_id=config.ETHERSCAN_CHAIN_ID,
        delay_seconds=config.ETHERSCAN_API_REQUEST_DELAY,
        lock=asyncio.Lock(),
        timeout=config.ETHERSCAN_API_TIMEOUT,
        proxy_url=config.ETHERSCAN_API_PROXY_URL
    )
else:
    clock = SystemClock()

# --- Token ledger, pre-funded with the airdrop supply ---
token_ledger = InMemoryTokenLedger(
    config.AIRDROP_TOKEN_ADDRESS,
    initial_balances={config.AIRDROP_ADDRESS: config.AIRDROP_TOKEN_SUPPLY}
)

# --- Airdrop ---
airdrop = Airdrop(
    token=token_ledger,
    root=merkle_root,
    address=config.AIRDROP_ADDRESS,
    bitmap=claim_bitmap,
    clock=clock,
    bind_caller=config.AIRDROP_BIND_CALLER
)
