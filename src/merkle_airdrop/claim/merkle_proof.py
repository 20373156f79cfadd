from typing import Sequence

from eth_utils import keccak


def hash_pair(a: bytes, b: bytes) -> bytes:
    """
    Commutative node hash: the numerically smaller child goes first.
    Same rule as OpenZeppelin MerkleProof, so the verifier never needs
    to know which side a sibling sits on.
    """
    if b < a:
        a, b = b, a
    return keccak(a + b)


def process_proof(leaf: bytes, proof: Sequence[bytes]) -> bytes:
    """
    Recomputes the root from a leaf hash and its sibling path.

    :raises ValueError: if any node is not exactly 32 bytes.
    """
    if len(leaf) != 32:
        raise ValueError(f"Leaf hash must be 32 bytes, got {len(leaf)}")
    computed = leaf
    for sibling in proof:
        if len(sibling) != 32:
            raise ValueError(f"Proof element must be 32 bytes, got {len(sibling)}")
        computed = hash_pair(computed, sibling)
    return computed


def verify_proof(proof: Sequence[bytes], root: bytes, leaf: bytes) -> bool:
    try:
        return process_proof(leaf, proof) == root
    except ValueError:
        return False
