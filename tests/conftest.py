from dataclasses import dataclass
from typing import List

import pytest
from eth_keys import keys

from merkle_airdrop.claim.airdrop import Airdrop
from merkle_airdrop.claim.bitmap import InMemoryClaimBitmap
from merkle_airdrop.providers.clock import FixedClock
from merkle_airdrop.providers.in_memory_token_ledger import InMemoryTokenLedger
from merkle_airdrop.tooling.credential_issuer import issue_credential
from merkle_airdrop.tooling.standard_merkle_tree import StandardMerkleTree, build_airdrop_tree

# Mon, 01 Jul 2024, 09:56:59 UTC
INITIAL_TIMESTAMP = 1719827819
MONTH = 30 * 24 * 60 * 60

TIMESTAMP1 = INITIAL_TIMESTAMP + 1 * MONTH
TIMESTAMP2 = INITIAL_TIMESTAMP + 3 * MONTH
TIMESTAMP3 = INITIAL_TIMESTAMP + 6 * MONTH
UNBOUNDED = 2**64 - 1

TOKEN_ADDRESS = "0x" + "a0" * 20
AIRDROP_ADDRESS = "0x" + "a1" * 20

USER1 = "0x1111111111111111111111111111111111111111"
USER2 = "0x2222222222222222222222222222222222222222"
USER3 = "0x3333333333333333333333333333333333333333"

SIGNER_KEYS = [
    keys.PrivateKey(bytes([0x41]) * 32),
    keys.PrivateKey(bytes([0x42]) * 32),
    keys.PrivateKey(bytes([0x43]) * 32),
]

AMOUNTS = [30, 2500, 10**21]
EXTRA_FUNDS = 1000


@dataclass
class AirdropSetup:
    airdrop: Airdrop
    ledger: InMemoryTokenLedger
    clock: FixedClock
    bitmap: InMemoryClaimBitmap
    tree: StandardMerkleTree
    root: bytes
    proofs: List[List[bytes]]
    credentials: List[str]

    def claim_args(self, index: int) -> tuple:
        """(credential, amount, id, begin, end, proof) for allocation `index`."""
        leaf = self.tree.leaf_at(index)
        return (self.credentials[index], leaf.amount, leaf.allocation_id,
                leaf.begin_time, leaf.end_time, self.proofs[index])


def build_setup(bind_caller: bool = True) -> AirdropSetup:
    tree = build_airdrop_tree([
        (SIGNER_KEYS[0].public_key.to_checksum_address(), AMOUNTS[0], TIMESTAMP1, TIMESTAMP2),
        (SIGNER_KEYS[1].public_key.to_checksum_address(), AMOUNTS[1], TIMESTAMP2, TIMESTAMP3),
        (SIGNER_KEYS[2].public_key.to_checksum_address(), AMOUNTS[2], TIMESTAMP3, None),
    ])
    ledger = InMemoryTokenLedger(
        TOKEN_ADDRESS,
        initial_balances={AIRDROP_ADDRESS: sum(AMOUNTS) + EXTRA_FUNDS},
    )
    clock = FixedClock(INITIAL_TIMESTAMP)
    bitmap = InMemoryClaimBitmap()
    airdrop = Airdrop(ledger, tree.root, AIRDROP_ADDRESS, bitmap=bitmap, clock=clock, bind_caller=bind_caller)

    beneficiaries = [USER1, USER2, USER3]
    credentials = [issue_credential(key, tree.root, user) for key, user in zip(SIGNER_KEYS, beneficiaries)]
    proofs = [tree.get_proof(i) for i in range(len(tree))]

    return AirdropSetup(airdrop, ledger, clock, bitmap, tree, tree.root, proofs, credentials)


@pytest.fixture
def setup() -> AirdropSetup:
    return build_setup()


@pytest.fixture
def relayed_setup() -> AirdropSetup:
    return build_setup(bind_caller=False)
