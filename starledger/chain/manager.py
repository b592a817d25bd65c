# starledger/chain/manager.py
import logging
import threading
import time
from typing import Callable, List, Optional, Tuple

from starledger.core.errors import BlockAlreadySealed, ChainInvalid, InternalError
from starledger.core.types import Block, Digest, Genesis, OwnedStar, StarClaim
from starledger.crypto.hashing import sha256_hex
from starledger.storage import StorageBackend
from starledger.verify.validator import ChainValidator

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def unix_now() -> int:
    return int(time.time())


class ChainManager:
    """
    Owns the ordered list of sealed blocks.

    All mutations run under one lock: reading the tip, sealing the candidate,
    validating and committing happen as a single step, so two appends can never
    claim the same height or the same previous_hash. Reads take the same lock
    and never observe a half-committed block.

    With a storage backend the stored blocks are loaded verbatim on start-up
    and every committed block is persisted before it becomes visible.
    """

    def __init__(
        self,
        storage: Optional[StorageBackend] = None,
        clock: Clock = unix_now,
        digest: Digest = sha256_hex,
    ):
        self._blocks: List[Block] = []
        self._lock = threading.RLock()
        self._storage = storage
        self._clock = clock
        self._digest = digest
        self._validator = ChainValidator(digest)

        if self._storage is not None:
            self._blocks = list(self._storage.load_blocks())
            logger.info("Loaded %d blocks from storage", len(self._blocks))

        self.initialize()

    @property
    def height(self) -> int:
        with self._lock:
            return len(self._blocks) - 1

    @property
    def blocks(self) -> Tuple[Block, ...]:
        """Immutable snapshot of the chain."""
        with self._lock:
            return tuple(self._blocks)

    def initialize(self) -> None:
        """Create the genesis block if the chain is empty. No-op otherwise."""
        with self._lock:
            if not self._blocks:
                genesis = self.append(Block.genesis())
                logger.info("Genesis block created: %s", genesis.hash)

    def append(self, block: Block) -> Block:
        """
        Seal `block` on top of the current tip and commit it.

        Raises ChainInvalid if the chain including the candidate fails
        validation, InternalError if the digest or storage faults. In both
        cases the chain is left exactly as it was.
        """
        with self._lock:
            tip = self._blocks[-1] if self._blocks else None
            previous_hash = tip.hash if tip is not None else None

            try:
                sealed = block.seal(
                    height=len(self._blocks),
                    previous_hash=previous_hash,
                    timestamp=self._clock(),
                    digest=self._digest,
                )
            except BlockAlreadySealed:
                raise
            except Exception as e:
                raise InternalError(f"digest failed: {e}") from e

            try:
                result = self._validator.validate(self._blocks + [sealed])
            except Exception as e:
                raise InternalError(f"digest failed during validation: {e}") from e
            if not result.is_valid:
                raise ChainInvalid(result.faulty_indices)

            if self._storage is not None:
                try:
                    self._storage.append(sealed)
                except Exception as e:
                    raise InternalError(f"failed to persist block {sealed.height}: {e}") from e

            self._blocks.append(sealed)
            logger.info("Block %d committed: %s", sealed.height, sealed.hash)
            return sealed

    def get_block_by_hash(self, block_hash: str) -> Optional[Block]:
        with self._lock:
            return next((b for b in self._blocks if b.hash == block_hash), None)

    def get_block_by_height(self, height: int) -> Optional[Block]:
        with self._lock:
            if 0 <= height < len(self._blocks):
                return self._blocks[height]
            return None

    def get_claims_by_address(self, address: str) -> List[OwnedStar]:
        """
        Stars registered by `address`, in chain order. Recomputed on every call.
        Raises DecodeError if a block body cannot be decoded.
        """
        stars = []
        for block in self.blocks:
            payload = block.decode_payload()
            if isinstance(payload, Genesis):
                continue
            if isinstance(payload, StarClaim) and payload.address == address:
                stars.append(OwnedStar(star=payload.star, owner=payload.address))
        return stars

    def validate_chain(self) -> List[int]:
        """Indices of faulty blocks; empty when the chain is intact."""
        return self._validator.validate(self.blocks).faulty_indices
