# starledger/registry.py
from typing import Any, List, Optional, Union

from starledger.chain.manager import ChainManager, Clock, unix_now
from starledger.chain.ownership import (
    CHALLENGE_TAG,
    DEFAULT_THRESHOLD_SECONDS,
    OwnershipVerifier,
    SignatureVerifier,
)
from starledger.core.types import Block, OwnedStar
from starledger.crypto.keys import verify_message
from starledger.storage import StorageBackend, create_storage


class StarRegistry:
    """
    The operations a transport (HTTP handler, CLI) calls into.

    storage accepts a backend, a "sqlite://..." URI, a plain file path
    (treated as SQLite) or None for an in-memory chain.
    """

    def __init__(
        self,
        storage: Optional[Union[StorageBackend, str]] = None,
        clock: Clock = unix_now,
        verify: SignatureVerifier = verify_message,
        threshold: int = DEFAULT_THRESHOLD_SECONDS,
        tag: str = CHALLENGE_TAG,
    ):
        opened_here = isinstance(storage, str)
        if isinstance(storage, str):
            stripped = storage.strip()
            if stripped.startswith("sqlite://"):
                storage = create_storage(stripped)
            elif stripped:
                storage = create_storage(f"sqlite://{stripped}")
            else:
                storage = None

        try:
            self.chain = ChainManager(storage=storage, clock=clock)
        except Exception:
            # a backend we opened ourselves must not leak
            if opened_here and storage is not None:
                storage.close()
            raise

        self.storage = storage
        self.ownership = OwnershipVerifier(
            self.chain, verify=verify, clock=clock, threshold=threshold, tag=tag
        )

    def initialize_chain(self) -> None:
        self.chain.initialize()

    def get_chain_height(self) -> int:
        return self.chain.height

    def request_message_ownership_verification(self, address: str) -> str:
        return self.ownership.issue_challenge(address)

    def submit_star(self, address: str, message: str, signature: str, star: Any) -> Block:
        return self.ownership.submit_claim(address, message, signature, star)

    def get_block_by_hash(self, block_hash: str) -> Optional[Block]:
        return self.chain.get_block_by_hash(block_hash)

    def get_block_by_height(self, height: int) -> Optional[Block]:
        return self.chain.get_block_by_height(height)

    def get_stars_by_wallet_address(self, address: str) -> List[OwnedStar]:
        return self.chain.get_claims_by_address(address)

    def validate_chain(self) -> List[int]:
        return self.chain.validate_chain()

    def close(self) -> None:
        """Release the storage backend, if any."""
        if self.storage is not None:
            self.storage.close()
            self.storage = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
