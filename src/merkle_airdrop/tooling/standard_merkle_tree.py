"""
Off-chain builder for the airdrop tree.

Produces the same array-layout tree, root and proofs as the OpenZeppelin
`StandardMerkleTree` ("standard-v1"): leaves are double-keccak hashes of the
ABI-encoded values, sorted ascending, stored at the end of the array in
reverse order, and inner nodes use the sorted-pair hash.
"""
import json
import logging
from typing import Any, Dict, Iterator, List, Sequence, Tuple

from ..claim.leaf_encoder import LEAF_ENCODING, AllocationLeaf, leaf_hash, to_recipient_bytes
from ..claim.merkle_proof import hash_pair, verify_proof
from ..claim.window import UNBOUNDED_END_TIME

logger = logging.getLogger(__name__)

TREE_FORMAT = "standard-v1"


def _left_child(i: int) -> int:
    return 2 * i + 1


def _right_child(i: int) -> int:
    return 2 * i + 2


def _sibling(i: int) -> int:
    return i + 1 if i % 2 == 1 else i - 1


def _parent(i: int) -> int:
    return (i - 1) // 2


def make_merkle_tree(leaves: Sequence[bytes]) -> List[bytes]:
    if not leaves:
        raise ValueError("Expected non-zero number of leaves")
    tree: List[bytes] = [b""] * (2 * len(leaves) - 1)
    for i, leaf in enumerate(leaves):
        tree[len(tree) - 1 - i] = leaf
    for i in range(len(tree) - 1 - len(leaves), -1, -1):
        tree[i] = hash_pair(tree[_left_child(i)], tree[_right_child(i)])
    return tree


class StandardMerkleTree:
    """
    Tree over AllocationLeaf records.
    `values` keeps the input order; each value remembers its array position.
    """

    def __init__(self, tree: List[bytes], values: List[Tuple[AllocationLeaf, int]]):
        self._tree = tree
        self._values = values

    @classmethod
    def of(cls, leaves: Sequence[AllocationLeaf]) -> "StandardMerkleTree":
        hashed = sorted(
            ((leaf.hash(), i) for i, leaf in enumerate(leaves)),
            key=lambda item: item[0],
        )
        tree = make_merkle_tree([h for h, _ in hashed])
        tree_index = [0] * len(leaves)
        for leaf_index, (_, value_index) in enumerate(hashed):
            tree_index[value_index] = len(tree) - leaf_index - 1
        return cls(tree, [(leaf, tree_index[i]) for i, leaf in enumerate(leaves)])

    @property
    def root(self) -> bytes:
        return self._tree[0]

    def __len__(self) -> int:
        return len(self._values)

    def entries(self) -> Iterator[Tuple[int, AllocationLeaf]]:
        for i, (leaf, _) in enumerate(self._values):
            yield i, leaf

    def leaf_at(self, index: int) -> AllocationLeaf:
        return self._values[index][0]

    def get_proof(self, index: int) -> List[bytes]:
        leaf, tree_index = self._values[index]
        proof = []
        while tree_index > 0:
            proof.append(self._tree[_sibling(tree_index)])
            tree_index = _parent(tree_index)
        if not verify_proof(proof, self.root, leaf.hash()):
            raise ValueError(f"Unable to prove value at index {index}")
        return proof

    def find_allocation(self, allocation_id: int) -> int:
        """Returns the value index holding `allocation_id`."""
        for i, (leaf, _) in enumerate(self._values):
            if leaf.allocation_id == allocation_id:
                return i
        raise KeyError(f"Allocation {allocation_id} is not in the tree")

    def dump(self) -> Dict[str, Any]:
        # uint256 values are written as decimal strings, JSON numbers lose precision.
        return {
            "format": TREE_FORMAT,
            "leafEncoding": list(LEAF_ENCODING),
            "tree": ["0x" + node.hex() for node in self._tree],
            "values": [
                {
                    "value": ["0x" + leaf.recipient.hex()] + [str(v) for v in leaf.as_values()[1:]],
                    "treeIndex": tree_index,
                }
                for leaf, tree_index in self._values
            ],
        }

    @classmethod
    def load(cls, data: Dict[str, Any]) -> "StandardMerkleTree":
        if data.get("format") != TREE_FORMAT:
            raise ValueError(f"Unknown tree format: {data.get('format')}")
        if list(data.get("leafEncoding", [])) != LEAF_ENCODING:
            raise ValueError(f"Unsupported leaf encoding: {data.get('leafEncoding')}")
        tree = [bytes.fromhex(node[2:]) for node in data["tree"]]
        values = []
        for item in data["values"]:
            recipient, amount, allocation_id, begin_time, end_time = item["value"]
            leaf = AllocationLeaf(to_recipient_bytes(recipient), int(amount), int(allocation_id),
                                  int(begin_time), int(end_time))
            tree_index = int(item["treeIndex"])
            if tree[tree_index] != leaf.hash():
                raise ValueError(f"Tree node {tree_index} does not match its value")
            values.append((leaf, tree_index))
        return cls(tree, values)

    def save(self, path: str):
        with open(path, "w") as f:
            json.dump(self.dump(), f, indent=2)

    @classmethod
    def from_file(cls, path: str) -> "StandardMerkleTree":
        with open(path, "r") as f:
            return cls.load(json.load(f))


def build_airdrop_tree(allocations: Sequence[Tuple[Any, int, int, int]]) -> StandardMerkleTree:
    """
    Builds the tree from (signer, amount, begin_time, end_time) rows,
    assigning dense allocation ids from 0 in input order.
    An end_time of None means no expiry.
    """
    leaves = []
    for allocation_id, (signer, amount, begin_time, end_time) in enumerate(allocations):
        if end_time is None:
            end_time = UNBOUNDED_END_TIME
        # Validates widths before anything gets committed to a root.
        leaf_hash(signer, amount, allocation_id, begin_time, end_time)
        leaves.append(AllocationLeaf(to_recipient_bytes(signer), amount, allocation_id, begin_time, end_time))
    tree = StandardMerkleTree.of(leaves)
    logger.info(f"Built airdrop tree with {len(leaves)} allocations, root 0x{tree.root.hex()}")
    return tree
