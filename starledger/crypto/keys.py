# starledger/crypto/keys.py
"""
Bitcoin Signed Message support (the scheme used by Electrum, Bitcoin Core
and bitcoinjs-message).

A signature is 65 bytes, base64 encoded: one header byte followed by r || s.
The header encodes the public key recovery id and the address type:

    27..30  P2PKH, uncompressed public key
    31..34  P2PKH, compressed public key
    35..38  P2SH-P2WPKH (compressed)

The signed digest is double-SHA256 over the magic prefix, a varint length and
the UTF-8 message.
"""

import hashlib
import logging
from typing import List, Optional

import base58
from ecdsa import BadSignatureError, SECP256k1, SigningKey, VerifyingKey
from ecdsa.util import sigdecode_string, sigencode_string_canonize

from starledger.core.encoding import b64_decode_signature, b64_encode_signature
from starledger.core.errors import DecodeError
from starledger.crypto.hashing import double_sha256, hash160

logger = logging.getLogger(__name__)

MESSAGE_MAGIC = b"\x18Bitcoin Signed Message:\n"

P2PKH_VERSIONS = {0x00: "mainnet", 0x6F: "testnet"}
P2SH_VERSIONS = {0x05: "mainnet", 0xC4: "testnet"}

HEADER_P2PKH_UNCOMPRESSED = 27
HEADER_P2PKH_COMPRESSED = 31
HEADER_P2SH_P2WPKH = 35


def _varint(n: int) -> bytes:
    if n < 0xFD:
        return bytes([n])
    if n <= 0xFFFF:
        return b"\xfd" + n.to_bytes(2, "little")
    if n <= 0xFFFFFFFF:
        return b"\xfe" + n.to_bytes(4, "little")
    return b"\xff" + n.to_bytes(8, "little")


def message_digest(message: str) -> bytes:
    raw = message.encode("utf-8")
    return double_sha256(MESSAGE_MAGIC + _varint(len(raw)) + raw)


def _p2wpkh_script_hash(compressed_pubkey: bytes) -> bytes:
    # redeem script: OP_0 PUSH20 <hash160(pubkey)>
    return hash160(b"\x00\x14" + hash160(compressed_pubkey))


def _recover_candidates(rs: bytes, digest: bytes) -> List[VerifyingKey]:
    return VerifyingKey.from_public_key_recovery_with_digest(
        rs, digest, SECP256k1, hashfunc=hashlib.sha256, sigdecode=sigdecode_string
    )


def _decode_address(address: str) -> Optional[bytes]:
    try:
        raw = base58.b58decode_check(address)
    except ValueError:
        return None
    return raw if len(raw) == 21 else None


def recover_public_key(message: str, signature: str) -> Optional[bytes]:
    """
    Recover the SEC-encoded public key that produced `signature` over `message`.
    Returns None for anything malformed.
    """
    try:
        sig = b64_decode_signature(signature)
    except DecodeError:
        return None
    if len(sig) != 65:
        return None

    header, rs = sig[0], sig[1:]
    if not HEADER_P2PKH_UNCOMPRESSED <= header < HEADER_P2SH_P2WPKH + 4:
        return None
    recid = (header - HEADER_P2PKH_UNCOMPRESSED) % 4
    compressed = header >= HEADER_P2PKH_COMPRESSED
    if recid > 1:
        # x = r + n, practically never produced
        return None

    digest = message_digest(message)
    try:
        vk = _recover_candidates(rs, digest)[recid]
        vk.verify_digest(rs, digest, sigdecode=sigdecode_string)
    except BadSignatureError:
        return None
    except Exception as e:
        # ecdsa raises assorted arithmetic errors for points off the curve
        logger.debug("Public key recovery failed: %s", e)
        return None
    return vk.to_string("compressed" if compressed else "uncompressed")


def verify_message(message: str, address: str, signature: str) -> bool:
    """
    True iff `signature` is a Bitcoin signed message over `message` by the key
    controlling `address`. Never raises on malformed input.
    """
    if not isinstance(message, str) or not isinstance(address, str) or not isinstance(signature, str):
        return False

    pubkey = recover_public_key(message, signature)
    if pubkey is None:
        return False
    decoded = _decode_address(address)
    if decoded is None:
        return False

    version, addr_hash = decoded[0], decoded[1:]
    header = b64_decode_signature(signature)[0]
    compressed = len(pubkey) == 33

    if version in P2PKH_VERSIONS and header < HEADER_P2SH_P2WPKH:
        return hash160(pubkey) == addr_hash
    if version in P2SH_VERSIONS and compressed:
        return _p2wpkh_script_hash(pubkey) == addr_hash
    return False


class WalletKey:
    """secp256k1 wallet key that signs messages the way Bitcoin wallets do."""

    def __init__(self, signing_key: SigningKey, compressed: bool = True, testnet: bool = False):
        self._sk = signing_key
        self.compressed = compressed
        self.testnet = testnet

    @classmethod
    def generate(cls, compressed: bool = True, testnet: bool = False) -> "WalletKey":
        return cls(SigningKey.generate(curve=SECP256k1), compressed, testnet)

    @classmethod
    def from_secret_hex(cls, secret_hex: str, compressed: bool = True, testnet: bool = False) -> "WalletKey":
        return cls(SigningKey.from_string(bytes.fromhex(secret_hex), curve=SECP256k1), compressed, testnet)

    def public_key_bytes(self) -> bytes:
        return self._sk.get_verifying_key().to_string("compressed" if self.compressed else "uncompressed")

    @property
    def address(self) -> str:
        """Legacy P2PKH address (1... on mainnet, m/n... on testnet)."""
        version = b"\x6f" if self.testnet else b"\x00"
        return base58.b58encode_check(version + hash160(self.public_key_bytes())).decode("ascii")

    @property
    def p2sh_segwit_address(self) -> str:
        """P2SH-wrapped P2WPKH address (3... / 2...). Compressed keys only."""
        if not self.compressed:
            raise ValueError("P2SH-P2WPKH requires a compressed public key")
        version = b"\xc4" if self.testnet else b"\x05"
        return base58.b58encode_check(version + _p2wpkh_script_hash(self.public_key_bytes())).decode("ascii")

    def sign_message(self, message: str, segwit: bool = False) -> str:
        """Return the base64 compact signature of `message`."""
        digest = message_digest(message)
        rs = self._sk.sign_digest_deterministic(
            digest, hashfunc=hashlib.sha256, sigencode=sigencode_string_canonize
        )

        own = self._sk.get_verifying_key().to_string()
        candidates = _recover_candidates(rs, digest)
        recid = next(i for i, vk in enumerate(candidates) if vk.to_string() == own)

        if segwit:
            if not self.compressed:
                raise ValueError("Segwit signatures require a compressed key")
            header = HEADER_P2SH_P2WPKH + recid
        elif self.compressed:
            header = HEADER_P2PKH_COMPRESSED + recid
        else:
            header = HEADER_P2PKH_UNCOMPRESSED + recid
        return b64_encode_signature(bytes([header]) + rs)
