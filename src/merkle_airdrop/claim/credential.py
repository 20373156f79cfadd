import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Union

from eth_abi import encode
from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError
from eth_utils import keccak, to_checksum_address

from ..errors import InvalidProof

logger = logging.getLogger(__name__)

CREDENTIAL_TAG = "ethsig"
CREDENTIAL_SIZE = 192

_WORD = 32
_PUBLIC_KEY_SIZE = 64
# secp256k1 group order; signatures with s above half of it are malleable twins.
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


def parse_credential(text: str) -> bytes:
    """
    Decodes the "<tag>:<base64>" credential string produced by the issuer
    into the raw signature blob.
    """
    tag, sep, payload = text.strip().partition(":")
    if not sep or tag != CREDENTIAL_TAG:
        raise InvalidProof(f"Unsupported credential tag: {tag!r}")
    try:
        blob = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidProof("Credential payload is not valid base64") from e
    if len(blob) != CREDENTIAL_SIZE:
        raise InvalidProof(f"Credential must be {CREDENTIAL_SIZE} bytes, got {len(blob)}")
    return blob


def format_credential(blob: bytes) -> str:
    return f"{CREDENTIAL_TAG}:{base64.b64encode(blob).decode('ascii')}"


def claim_message_hash(root: bytes, beneficiary: bytes) -> bytes:
    """
    EIP-191 personal-message digest the recipient signs.
    The Merkle root is the issuing context, so a credential only works
    for the airdrop it was issued for.
    """
    inner = keccak(encode(['bytes32', 'address'], [root, to_checksum_address(beneficiary)]))
    return keccak(b"\x19Ethereum Signed Message:\n32" + inner)


@dataclass(frozen=True)
class ClaimCredential:
    """
    Decoded credential blob.

    Layout: public key (64) | beneficiary (32, left padded) | v (32) | r (32) | s (32).
    """
    public_key: bytes
    beneficiary: bytes
    v: int
    r: int
    s: int

    @classmethod
    def decode(cls, blob: Union[bytes, bytearray]) -> "ClaimCredential":
        if len(blob) != CREDENTIAL_SIZE:
            raise InvalidProof(f"Credential must be {CREDENTIAL_SIZE} bytes, got {len(blob)}")
        blob = bytes(blob)
        words = [blob[_PUBLIC_KEY_SIZE + i * _WORD:_PUBLIC_KEY_SIZE + (i + 1) * _WORD] for i in range(4)]
        beneficiary_word, v_word, r_word, s_word = words

        if any(beneficiary_word[:12]):
            raise InvalidProof("Beneficiary word has dirty high bytes")

        return cls(
            public_key=blob[:_PUBLIC_KEY_SIZE],
            beneficiary=beneficiary_word[12:],
            v=int.from_bytes(v_word, "big"),
            r=int.from_bytes(r_word, "big"),
            s=int.from_bytes(s_word, "big"),
        )

    def encode(self) -> bytes:
        return (
            self.public_key
            + self.beneficiary.rjust(_WORD, b"\x00")
            + self.v.to_bytes(_WORD, "big")
            + self.r.to_bytes(_WORD, "big")
            + self.s.to_bytes(_WORD, "big")
        )

    @property
    def signer(self) -> bytes:
        """20-byte identity derived from the embedded public key."""
        return keccak(self.public_key)[12:]


def recover_signer(credential: ClaimCredential, root: bytes) -> bytes:
    """
    Verifies the credential signature over (root, beneficiary) and returns
    the signer identity that must appear in the Merkle leaf.

    :raises InvalidProof: on any malformed or mismatching signature.
    """
    if credential.v in (27, 28):
        v = credential.v - 27
    elif credential.v in (0, 1):
        v = credential.v
    else:
        raise InvalidProof(f"Invalid signature recovery id: {credential.v}")

    if not 0 < credential.r < SECP256K1_N:
        raise InvalidProof("Signature r value is out of range")
    if not 0 < credential.s <= SECP256K1_N // 2:
        raise InvalidProof("Signature s value is out of the lower half-order range")

    msg_hash = claim_message_hash(root, credential.beneficiary)
    try:
        signature = keys.Signature(vrs=(v, credential.r, credential.s))
        recovered = signature.recover_public_key_from_msg_hash(msg_hash)
    except (BadSignature, ValidationError, ValueError) as e:
        logger.debug(f"Signature recovery failed: {e}")
        raise InvalidProof("Credential signature could not be recovered") from e

    if recovered.to_bytes() != credential.public_key:
        raise InvalidProof("Credential was not signed by the embedded key")

    return recovered.to_canonical_address()
