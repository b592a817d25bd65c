# starledger/verify/validator.py
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from starledger.core.types import Block, Digest
from starledger.crypto.hashing import sha256_hex

logger = logging.getLogger(__name__)


@dataclass
class ValidationFailure:
    index: int
    message: str
    category: str = "hash"  # "hash" (content digest) or "link" (previous_hash)


@dataclass
class VerificationResult:
    failures: List[ValidationFailure] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.failures

    @property
    def faulty_indices(self) -> List[int]:
        """Offending block indices in discovery order; an index repeats when both checks fail."""
        return [f.index for f in self.failures]

    @property
    def first_failure(self) -> Optional[ValidationFailure]:
        return self.failures[0] if self.failures else None

    def __bool__(self):
        return self.is_valid

    def __str__(self):
        if self.is_valid:
            return "Chain is valid ✓"
        lines = [f"Validation FAILED ({len(self.failures)} issues):"]
        for f in self.failures:
            lines.append(f"  • [{f.index}] {f.category}: {f.message}")
        return "\n".join(lines)


class ChainValidator:
    """
    Checks every adjacent pair (i, i+1) of a chain:
      - block i still hashes to its stored hash
      - block i's hash is the previous_hash of block i+1

    The last block is only covered through the link check of its predecessor.
    """

    def __init__(self, digest: Digest = sha256_hex):
        self.digest = digest

    def validate(self, blocks: Sequence[Block]) -> VerificationResult:
        result = VerificationResult()

        for i in range(len(blocks) - 1):
            block, successor = blocks[i], blocks[i + 1]
            if not block.validate(self.digest):
                result.failures.append(
                    ValidationFailure(i, "stored hash does not match block content", "hash")
                )
            if block.hash != successor.previous_hash:
                result.failures.append(
                    ValidationFailure(i, f"hash is not the previous_hash of block {i + 1}", "link")
                )

        if result.is_valid:
            logger.debug("No errors detected in %d blocks", len(blocks))
        else:
            logger.warning("Block errors = %d, blocks: %s", len(result.failures), result.faulty_indices)
        return result
