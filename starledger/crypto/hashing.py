# starledger/crypto/hashing.py
import hashlib

from Crypto.Hash import RIPEMD160


def sha256_hex(data: bytes) -> str:
    """Block digest: hex(sha256(data))."""
    return hashlib.sha256(data).hexdigest()


def double_sha256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data)), the Bitcoin address hash."""
    return RIPEMD160.new(hashlib.sha256(data).digest()).digest()
