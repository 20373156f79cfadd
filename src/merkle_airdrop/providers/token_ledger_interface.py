from abc import ABC, abstractmethod


class AbstractTokenLedger(ABC):
    """
    Abstract base class (interface) for the fungible-token ledger.
    The claim engine only moves value through `transfer` and reads
    through `balance_of`; any ERC-20 style backend can implement it.
    """

    @property
    @abstractmethod
    def address(self) -> str:
        """Checksum address of the token."""
        pass

    @abstractmethod
    async def transfer(self, sender: str, to: str, amount: int) -> bool:
        """
        Moves `amount` from `sender` to `to`.

        :return: True on success. False means the ledger refused the transfer.
        :raises TokenLedgerError: on ledger-side failures.
        """
        pass

    @abstractmethod
    async def balance_of(self, account: str) -> int:
        pass
