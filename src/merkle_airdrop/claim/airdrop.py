import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from eth_utils import to_checksum_address

from ..errors import ClaimError, InvalidProof, TokenLedgerError, TokenTransferFailed
from ..providers.clock import AbstractClock, SystemClock
from ..providers.token_ledger_interface import AbstractTokenLedger
from .bitmap import AbstractClaimBitmap, InMemoryClaimBitmap
from .credential import CREDENTIAL_TAG, ClaimCredential, parse_credential, recover_signer
from .leaf_encoder import leaf_hash
from .merkle_proof import verify_proof
from .window import check_window

logger = logging.getLogger(__name__)

CredentialLike = Union[bytes, bytearray, str]
NodeLike = Union[bytes, str]


@dataclass(frozen=True)
class ValidatedClaim:
    caller: str
    signer: bytes
    beneficiary: str
    amount: int
    allocation_id: int
    begin_time: int
    end_time: int
    leaf: bytes
    checked_at: int


@dataclass(frozen=True)
class ClaimReceipt:
    caller: str
    claim: ValidatedClaim

    @property
    def beneficiary(self) -> str:
        return self.claim.beneficiary

    @property
    def amount(self) -> int:
        return self.claim.amount


def _credential_blob(credential: CredentialLike) -> bytes:
    """Accepts raw bytes, 0x-hex, or the "ethsig:<base64>" text form."""
    if isinstance(credential, (bytes, bytearray)):
        return bytes(credential)
    if credential.startswith(f"{CREDENTIAL_TAG}:"):
        return parse_credential(credential)
    try:
        return bytes.fromhex(credential[2:] if credential.startswith("0x") else credential)
    except ValueError as e:
        raise InvalidProof("Credential is neither hex nor a tagged credential") from e


def _node(value: NodeLike) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    try:
        return bytes.fromhex(value[2:] if value.startswith("0x") else value)
    except ValueError as e:
        raise InvalidProof(f"Proof element is not hex: {value!r}") from e


class Airdrop:
    """
    Merkle airdrop claim engine.

    Holds the immutable root and ledger reference, and exposes the read-only
    pre-flight check and the state-changing claim. A claim is all-or-nothing:
    the bitmap bit is set before the transfer and reverted if the transfer fails.
    """

    def __init__(self,
                 token: AbstractTokenLedger,
                 root: bytes,
                 address: str,
                 bitmap: Optional[AbstractClaimBitmap] = None,
                 clock: Optional[AbstractClock] = None,
                 bind_caller: bool = True):
        """
        :param token: external ledger the allocations are paid from.
        :param root: 32-byte Merkle root committed at construction.
        :param address: this airdrop's own account on the ledger.
        :param bitmap: claim bitmap backend, in-memory by default.
        :param clock: time source for claim windows, system time by default.
        :param bind_caller: require the caller to be the credential's beneficiary.
        """
        if len(root) != 32:
            raise ValueError(f"Merkle root must be 32 bytes, got {len(root)}")
        self._ledger = token
        self._root = bytes(root)
        self._address = to_checksum_address(address)
        self._bitmap = bitmap or InMemoryClaimBitmap()
        self._clock = clock or SystemClock()
        self._bind_caller = bind_caller
        logger.info(f"Airdrop {self._address} initialized with root 0x{self._root.hex()} for token {token.address}")

    @property
    def token(self) -> str:
        return self._ledger.address

    @property
    def root(self) -> bytes:
        return self._root

    @property
    def address(self) -> str:
        return self._address

    @property
    def ledger(self) -> AbstractTokenLedger:
        return self._ledger

    @property
    def bind_caller(self) -> bool:
        return self._bind_caller

    async def is_claimed(self, allocation_id: int) -> bool:
        return await self._bitmap.is_claimed(allocation_id)

    async def check_valid_claim(self, caller: str, credential: CredentialLike, amount: int,
                                allocation_id: int, begin_time: int, end_time: int,
                                proof: Sequence[NodeLike]) -> ValidatedClaim:
        """
        Runs every validation step of a claim without changing any state.

        :raises InvalidProof: credential, leaf fields or proof do not match the root,
            or the caller is not the credential's beneficiary.
        :raises NotReadyYet: the window has not opened.
        :raises Expired: the window has closed.
        """
        now = await self._clock.now()
        return self._validate(caller, credential, amount, allocation_id, begin_time, end_time, proof, now)

    async def claim_tokens(self, caller: str, credential: CredentialLike, amount: int,
                           allocation_id: int, begin_time: int, end_time: int,
                           proof: Sequence[NodeLike]) -> ClaimReceipt:
        """
        Validates the claim, marks the allocation claimed and transfers `amount`
        to the beneficiary. Any failure leaves the bitmap and balances untouched.

        :raises AlreadyClaimed: the allocation id was claimed before.
        :raises TokenTransferFailed: the ledger refused the transfer.
        """
        try:
            claim = await self.check_valid_claim(caller, credential, amount, allocation_id,
                                                 begin_time, end_time, proof)

            async with self._bitmap.set_claimed(allocation_id):
                await self._transfer(claim)
        except ClaimError as e:
            logger.warning(f"Claim of allocation {allocation_id} by {caller} rejected: {e.kind.value} ({e})")
            raise

        logger.info(f"Allocation {allocation_id} claimed: {claim.amount} to {claim.beneficiary} (caller {caller})")
        return ClaimReceipt(caller=claim.caller, claim=claim)

    def _validate(self, caller, credential, amount, allocation_id, begin_time, end_time, proof, now) -> ValidatedClaim:
        # Malformed callers fail here, before any state is touched.
        caller = to_checksum_address(caller)
        decoded = ClaimCredential.decode(_credential_blob(credential))
        signer = recover_signer(decoded, self._root)

        leaf = leaf_hash(signer, amount, allocation_id, begin_time, end_time)
        if not verify_proof([_node(p) for p in proof], self._root, leaf):
            raise InvalidProof("Proof does not reconstruct the Merkle root")

        check_window(begin_time, end_time, now)

        beneficiary = to_checksum_address(decoded.beneficiary)
        if self._bind_caller and caller != beneficiary:
            raise InvalidProof(f"Credential is bound to {beneficiary}, not to caller {caller}")

        return ValidatedClaim(
            caller=caller,
            signer=signer,
            beneficiary=beneficiary,
            amount=amount,
            allocation_id=allocation_id,
            begin_time=begin_time,
            end_time=end_time,
            leaf=leaf,
            checked_at=now,
        )

    async def _transfer(self, claim: ValidatedClaim):
        try:
            ok = await self._ledger.transfer(self._address, claim.beneficiary, claim.amount)
        except TokenLedgerError as e:
            logger.error(f"Airdrop: transfer for allocation {claim.allocation_id} failed, claim bit will be reverted. Error: {e}", exc_info=True)
            raise TokenTransferFailed(f"Ledger rejected transfer of allocation {claim.allocation_id}: {e}") from e
        if not ok:
            raise TokenTransferFailed(f"Ledger returned false for allocation {claim.allocation_id}")
