# starledger/core/types.py
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Optional, Union

from starledger.core.canon import canonical_json
from starledger.core.encoding import hex_decode_json, hex_encode_json
from starledger.core.errors import BlockAlreadySealed, DecodeError
from starledger.crypto.hashing import sha256_hex

GENESIS_DATA = "Genesis Block"

Digest = Callable[[bytes], str]


@dataclass(frozen=True)
class Genesis:
    """Fixed marker payload of block 0."""
    data: str = GENESIS_DATA

    def to_dict(self) -> dict:
        return {"type": "genesis", "data": self.data}


@dataclass(frozen=True)
class StarClaim:
    """A star registration signed by the owner of `address`."""
    address: str
    message: str
    signature: str
    star: Any = field(default_factory=dict)   # any JSON value, passed through untouched

    def to_dict(self) -> dict:
        return {
            "type": "star_claim",
            "address": self.address,
            "message": self.message,
            "signature": self.signature,
            "star": self.star,
        }


Payload = Union[Genesis, StarClaim]


def decode_payload_dict(d: Any) -> Payload:
    if not isinstance(d, dict):
        raise DecodeError(f"Payload must be an object, got {type(d).__name__}")
    kind = d.get("type")
    if kind == "genesis":
        data = d.get("data")
        if not isinstance(data, str):
            raise DecodeError("Genesis payload without data")
        return Genesis(data=data)
    if kind == "star_claim":
        try:
            address, message, signature = d["address"], d["message"], d["signature"]
            star = d["star"]
        except KeyError as e:
            raise DecodeError(f"Star claim missing field {e}") from e
        if not all(isinstance(v, str) for v in (address, message, signature)):
            raise DecodeError("Star claim address/message/signature must be strings")
        return StarClaim(address=address, message=message, signature=signature, star=star)
    raise DecodeError(f"Unknown payload type: {kind!r}")


@dataclass(frozen=True)
class OwnedStar:
    """Result row of an address query."""
    star: Any
    owner: str

    def to_dict(self) -> dict:
        return {"star": self.star, "owner": self.owner}


@dataclass(frozen=True)
class Block:
    """
    One ledger entry. Unsealed blocks carry only a body; `seal` fills in
    height, timestamp, previous_hash and the content hash exactly once.
    """
    body: str                               # hex(canonical JSON payload)
    height: int = -1
    timestamp: int = 0                      # unix seconds
    previous_hash: Optional[str] = None     # None only for genesis
    hash: str = ""                          # empty until sealed

    @classmethod
    def from_payload(cls, payload: Payload) -> "Block":
        return cls(body=hex_encode_json(payload.to_dict()))

    @classmethod
    def genesis(cls) -> "Block":
        return cls.from_payload(Genesis())

    @property
    def is_sealed(self) -> bool:
        return self.hash != ""

    def content_dict(self) -> dict:
        """Every field except the hash itself: the digest input."""
        return {
            "body": self.body,
            "height": self.height,
            "timestamp": self.timestamp,
            "previous_hash": self.previous_hash,
        }

    def compute_hash(self, digest: Digest = sha256_hex) -> str:
        return digest(canonical_json(self.content_dict()))

    def seal(
        self,
        height: int,
        previous_hash: Optional[str],
        timestamp: int,
        digest: Digest = sha256_hex,
    ) -> "Block":
        """Return the sealed copy of this block. Sealing twice is a bug."""
        if self.is_sealed:
            raise BlockAlreadySealed(f"height {self.height}, hash {self.hash[:16]}")
        positioned = replace(self, height=height, previous_hash=previous_hash, timestamp=timestamp)
        return replace(positioned, hash=positioned.compute_hash(digest))

    def validate(self, digest: Digest = sha256_hex) -> bool:
        return self.is_sealed and self.compute_hash(digest) == self.hash

    def decode_payload(self) -> Payload:
        return decode_payload_dict(hex_decode_json(self.body))

    def to_dict(self) -> dict:
        d = self.content_dict()
        d["hash"] = self.hash
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "Block":
        try:
            return cls(
                body=d["body"],
                height=int(d["height"]),
                timestamp=int(d["timestamp"]),
                previous_hash=d.get("previous_hash"),
                hash=d["hash"],
            )
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"Cannot rebuild block: {e}") from e
