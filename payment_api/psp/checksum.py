"""
PhonePe X-VERIFY checksum construction.

X-VERIFY = SHA256(base64Payload + apiPath + saltKey) + '###' + saltIndex
Status checks sign apiPath + saltKey (no payload).

The concatenation has no delimiters; any deviation makes the provider reject
the call with an auth failure.
"""
import base64
import hashlib
import json
from typing import Any, Dict, Union


def sign(message: Union[str, bytes], secret: str) -> str:
    """Hex SHA-256 digest of message followed by secret."""
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hashlib.sha256(message + secret.encode("utf-8")).hexdigest()


def encode_payload(payload: Dict[str, Any]) -> str:
    """Base64 of the compact JSON encoding of a pay request."""
    payload_str = json.dumps(payload, separators=(",", ":"))
    return base64.b64encode(payload_str.encode("utf-8")).decode("utf-8")


def x_verify(digest: str, key_index: Union[str, int]) -> str:
    return f"{digest}###{key_index}"


def pay_checksum(payload_b64: str, path: str, secret: str, key_index: Union[str, int]) -> str:
    """X-VERIFY header for the pay endpoint."""
    return x_verify(sign(f"{payload_b64}{path}", secret), key_index)


def status_checksum(path: str, secret: str, key_index: Union[str, int]) -> str:
    """X-VERIFY header for the status endpoint."""
    return x_verify(sign(path, secret), key_index)
