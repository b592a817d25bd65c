# starledger/chain/ownership.py
import logging
from typing import Any, Callable

from starledger.chain.manager import ChainManager, Clock, unix_now
from starledger.core.errors import (
    AppendError,
    ChainRejected,
    Expired,
    InternalError,
    InvalidSignature,
    MalformedMessage,
)
from starledger.core.types import Block, StarClaim
from starledger.crypto.keys import verify_message

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD_SECONDS = 5 * 60
CHALLENGE_TAG = "starRegistry"

SignatureVerifier = Callable[[str, str, str], bool]


def parse_challenge_timestamp(message: str) -> int:
    """Timestamp embedded in `<address>:<timestamp>:<tag>`."""
    parts = message.split(":") if isinstance(message, str) else []
    if len(parts) < 2:
        raise MalformedMessage(f"no timestamp field in {message!r}")
    raw = parts[1].strip()
    if not (raw.isascii() and raw.isdigit()):
        raise MalformedMessage(f"timestamp {raw!r} is not numeric")
    return int(raw)


class OwnershipVerifier:
    """
    Two-phase challenge/response guarding who may append a star claim.

    Issued -> Verified -> Committed, or Rejected (expired / invalid signature).
    No state is kept between calls: each submission is judged from the
    message contents and the current time, so a valid signature can be
    replayed until the threshold elapses.
    """

    def __init__(
        self,
        chain: ChainManager,
        verify: SignatureVerifier = verify_message,
        clock: Clock = unix_now,
        threshold: int = DEFAULT_THRESHOLD_SECONDS,
        tag: str = CHALLENGE_TAG,
    ):
        if threshold <= 0:
            raise ValueError("threshold must be a positive number of seconds")
        self.chain = chain
        self.verify = verify
        self.clock = clock
        self.threshold = threshold
        self.tag = tag

    def issue_challenge(self, address: str) -> str:
        return f"{address}:{self.clock()}:{self.tag}"

    def submit_claim(self, address: str, message: str, signature: str, star: Any) -> Block:
        issued_at = parse_challenge_timestamp(message)

        elapsed = self.clock() - issued_at
        if elapsed >= self.threshold:
            logger.warning("Claim by %s rejected: message expired (%ds old)", address, elapsed)
            raise Expired(f"{elapsed}s elapsed, limit is {self.threshold}s")

        try:
            authentic = self.verify(message, address, signature)
        except Exception as e:
            raise InternalError(f"signature verifier failed: {e}") from e
        if not authentic:
            logger.warning("Claim by %s rejected: invalid signature", address)
            raise InvalidSignature(f"signature does not authenticate {address}")
        logger.debug("Claim by %s verified", address)

        claim = StarClaim(address=address, message=message, signature=signature, star=star)
        # raises DecodeError when the star is not representable as canonical JSON
        candidate = Block.from_payload(claim)
        try:
            block = self.chain.append(candidate)
        except AppendError as e:
            logger.warning("Claim by %s rejected by the chain: %s", address, e)
            raise ChainRejected(e.reason) from e

        logger.debug("Claim by %s committed at height %d", address, block.height)
        return block
