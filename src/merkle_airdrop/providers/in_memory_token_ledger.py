import asyncio
import logging
from typing import Dict, Optional

from eth_utils import to_checksum_address

from ..errors import InsufficientBalance, TokenLedgerError
from .token_ledger_interface import AbstractTokenLedger

logger = logging.getLogger(__name__)


class InMemoryTokenLedger(AbstractTokenLedger):
    """
    Process-local ERC-20 style ledger.
    Balances are keyed by checksum address; unknown accounts hold zero.
    """

    def __init__(self, address: str, symbol: str = "TKN", initial_balances: Optional[Dict[str, int]] = None):
        self._address = to_checksum_address(address)
        self.symbol = symbol
        self._balances: Dict[str, int] = {
            to_checksum_address(account): amount for account, amount in (initial_balances or {}).items()
        }
        self._lock = asyncio.Lock()

    @property
    def address(self) -> str:
        return self._address

    async def mint(self, account: str, amount: int):
        if amount < 0:
            raise TokenLedgerError(f"Cannot mint a negative amount: {amount}")
        account = to_checksum_address(account)
        async with self._lock:
            self._balances[account] = self._balances.get(account, 0) + amount
        logger.info(f"Minted {amount} {self.symbol} to {account}")

    async def transfer(self, sender: str, to: str, amount: int) -> bool:
        if amount < 0:
            raise TokenLedgerError(f"Cannot transfer a negative amount: {amount}")
        sender = to_checksum_address(sender)
        to = to_checksum_address(to)

        async with self._lock:
            balance = self._balances.get(sender, 0)
            if balance < amount:
                raise InsufficientBalance(f"{sender} holds {balance} {self.symbol}, needs {amount}")
            self._balances[sender] = balance - amount
            self._balances[to] = self._balances.get(to, 0) + amount

        logger.info(f"Transfer {amount} {self.symbol}: {sender} -> {to}")
        return True

    async def balance_of(self, account: str) -> int:
        return self._balances.get(to_checksum_address(account), 0)
