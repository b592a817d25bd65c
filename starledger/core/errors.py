# starledger/core/errors.py
"""
Error taxonomy for the ledger.

Every error carries a stable, human-readable ``reason``. Lookups that find
nothing return ``None`` / ``[]`` instead of raising.
"""

from typing import List, Optional, Sequence


class LedgerError(Exception):
    """Base class for all ledger failures."""

    reason: str = "ledger error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail
        super().__init__(f"{self.reason}: {detail}" if detail else self.reason)


class DecodeError(LedgerError, ValueError):
    reason = "malformed payload"


class InternalError(LedgerError):
    """A collaborator (digest, signature verifier, storage) faulted."""

    reason = "internal error"


class BlockAlreadySealed(LedgerError, RuntimeError):
    reason = "block is already sealed"


class AppendError(LedgerError):
    reason = "append rejected"


class ChainInvalid(AppendError):
    reason = "the chain is not valid"

    def __init__(self, indices: Sequence[int]):
        self.indices: List[int] = list(indices)
        super().__init__(f"faulty blocks at {self.indices}")


class ClaimError(LedgerError):
    reason = "claim rejected"


class MalformedMessage(ClaimError):
    reason = "malformed ownership message"


class Expired(ClaimError):
    reason = "ownership message expired"


class InvalidSignature(ClaimError):
    reason = "invalid signature"


class ChainRejected(ClaimError):
    reason = "chain rejected the claim block"
