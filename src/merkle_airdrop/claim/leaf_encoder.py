from dataclasses import dataclass
from typing import Union

from eth_abi import encode
from eth_utils import keccak, to_canonical_address

# Field widths of the off-chain tree builder (OpenZeppelin StandardMerkleTree).
LEAF_ENCODING = ['bytes20', 'uint256', 'uint256', 'uint256', 'uint256']

MAX_UINT256 = 2**256 - 1
MAX_UINT64 = 2**64 - 1

AddressLike = Union[str, bytes]


def to_recipient_bytes(recipient: AddressLike) -> bytes:
    """
    Normalizes a recipient identity to its raw 20 bytes.
    Accepts a 0x-prefixed hex string (any case) or raw bytes.
    """
    if isinstance(recipient, (bytes, bytearray)):
        if len(recipient) != 20:
            raise ValueError(f"Recipient must be 20 bytes, got {len(recipient)}")
        return bytes(recipient)
    return to_canonical_address(recipient)


def _require_range(name: str, value: int, upper: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0 or value > upper:
        raise ValueError(f"{name} out of range: {value}")
    return value


def encode_leaf(recipient: AddressLike, amount: int, allocation_id: int,
                begin_time: int, end_time: int) -> bytes:
    """
    Serializes one allocation record exactly as it was hashed off-chain.

    :param recipient: 20-byte identity of the entitled signer.
    :param amount: uint256 token amount.
    :param allocation_id: uint256 dense id, also the bitmap slot.
    :param begin_time: uint64 window start (inclusive).
    :param end_time: uint64 window end (exclusive), 2**64-1 for no expiry.
    :return: ABI encoding of (bytes20, uint256, uint256, uint256, uint256).
    """
    values = [
        to_recipient_bytes(recipient),
        _require_range("amount", amount, MAX_UINT256),
        _require_range("allocation_id", allocation_id, MAX_UINT256),
        _require_range("begin_time", begin_time, MAX_UINT64),
        _require_range("end_time", end_time, MAX_UINT64),
    ]
    return encode(LEAF_ENCODING, values)


def leaf_hash(recipient: AddressLike, amount: int, allocation_id: int,
              begin_time: int, end_time: int) -> bytes:
    # Double keccak, so a leaf can never be confused with an inner node.
    return keccak(keccak(encode_leaf(recipient, amount, allocation_id, begin_time, end_time)))


@dataclass(frozen=True)
class AllocationLeaf:
    recipient: bytes
    amount: int
    allocation_id: int
    begin_time: int
    end_time: int

    def hash(self) -> bytes:
        return leaf_hash(self.recipient, self.amount, self.allocation_id, self.begin_time, self.end_time)

    def as_values(self) -> list:
        """Values in tree-builder order, with the recipient as 0x-hex."""
        return ["0x" + self.recipient.hex(), self.amount, self.allocation_id, self.begin_time, self.end_time]
