# starledger/core/encoding.py
import base64
import binascii
import json
from typing import Any

from starledger.core.canon import canonical_json
from starledger.core.errors import DecodeError


def hex_encode_json(obj: Any) -> str:
    """Canonical JSON of obj, hex encoded (the block body format).
    Raises DecodeError for values JSON cannot represent (NaN, Infinity, sets...)."""
    try:
        return canonical_json(obj).hex()
    except (ValueError, TypeError) as e:
        raise DecodeError(f"Payload is not representable as JSON: {e}") from e


def hex_decode_json(body: str) -> Any:
    """Reverse of hex_encode_json. Raises DecodeError on bad hex, UTF-8 or JSON."""
    try:
        raw = bytes.fromhex(body)
        return json.loads(raw.decode("utf-8"))
    except (ValueError, TypeError) as e:
        # UnicodeDecodeError and JSONDecodeError are both ValueErrors
        raise DecodeError(f"Malformed block body: {e}") from e


def b64_decode_signature(signature: str) -> bytes:
    """Decode a standard (padded) base64 signature string, strictly."""
    try:
        return base64.b64decode(signature, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Signature is not valid base64: {e}") from e


def b64_encode_signature(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")
