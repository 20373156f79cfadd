import logging
from typing import Union

from eth_keys import keys
from eth_utils import to_canonical_address, to_checksum_address

from ..claim.credential import ClaimCredential, claim_message_hash, format_credential

logger = logging.getLogger(__name__)

PrivateKeyLike = Union[bytes, str, keys.PrivateKey]


def load_private_key(private_key: PrivateKeyLike) -> keys.PrivateKey:
    if isinstance(private_key, keys.PrivateKey):
        return private_key
    if isinstance(private_key, str):
        private_key = bytes.fromhex(private_key[2:] if private_key.startswith("0x") else private_key)
    return keys.PrivateKey(private_key)


def signer_identity(private_key: PrivateKeyLike) -> str:
    """Checksum identity that goes into the leaf for this key."""
    return load_private_key(private_key).public_key.to_checksum_address()


def issue_credential(private_key: PrivateKeyLike, root: bytes, beneficiary: str) -> str:
    """
    Signs (root, beneficiary) with the recipient's key and returns
    the "ethsig:<base64>" credential handed to the claimant.
    """
    key = load_private_key(private_key)
    beneficiary_bytes = to_canonical_address(beneficiary)
    signature = key.sign_msg_hash(claim_message_hash(root, beneficiary_bytes))

    credential = ClaimCredential(
        public_key=key.public_key.to_bytes(),
        beneficiary=beneficiary_bytes,
        v=signature.v + 27,
        r=signature.r,
        s=signature.s,
    )
    logger.info(f"Issued credential for signer {key.public_key.to_checksum_address()} -> {to_checksum_address(beneficiary)}")
    return format_credential(credential.encode())
