from enum import Enum


class ClaimErrorKind(str, Enum):
    INVALID_PROOF = "InvalidProof"
    NOT_READY_YET = "NotReadyYet"
    EXPIRED = "Expired"
    ALREADY_CLAIMED = "AlreadyClaimed"
    TRANSFER_FAILED = "TransferFailed"


class ClaimError(Exception):
    """
    Base class for every rejected claim.
    Each subclass carries a distinct `kind` so callers can report
    an accurate reason without parsing the message.
    """
    kind: ClaimErrorKind

    def __init__(self, message: str = ""):
        super().__init__(message or self.kind.value)


class InvalidProof(ClaimError):
    """The supplied proof, credential, amount or id does not match the committed root."""
    kind = ClaimErrorKind.INVALID_PROOF


class NotReadyYet(ClaimError):
    """The claim window has not opened yet. Retryable later."""
    kind = ClaimErrorKind.NOT_READY_YET


class Expired(ClaimError):
    kind = ClaimErrorKind.EXPIRED


class AlreadyClaimed(ClaimError):
    kind = ClaimErrorKind.ALREADY_CLAIMED


class TokenTransferFailed(ClaimError):
    """The ledger refused or failed the transfer; the claim was rolled back."""
    kind = ClaimErrorKind.TRANSFER_FAILED


class TokenLedgerError(Exception):
    """Custom exception for all token ledger errors."""
    pass


class InsufficientBalance(TokenLedgerError):
    pass
