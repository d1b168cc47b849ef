"""
HMAC-SHA256 request signatures.

signature = hex(HMAC-SHA256(key=SECRET_KEY, msg=canonicalize_payload(data, timestamp)))
"""

import hashlib
import hmac
from typing import Any, Dict, Union

from .canonicalization import canonicalize_payload
from .util import constant_time_compare


def compute_signature(canonical: bytes, secret_key: Union[str, bytes]) -> str:
    """Compute the lowercase hex HMAC-SHA256 of canonical bytes."""
    if isinstance(secret_key, str):
        secret_key = secret_key.encode('utf-8')
    return hmac.new(secret_key, canonical, hashlib.sha256).hexdigest()


def verify_signature(canonical: bytes, signature: str, secret_key: Union[str, bytes]) -> bool:
    """
    Verify a caller-supplied hex digest against canonical bytes.

    The comparison is constant-time with respect to the digest content.
    A mismatch returns False; this function never raises for bad input.

    Args:
        canonical: Bytes produced by canonicalize_payload
        signature: Hex digest supplied by the caller
        secret_key: Server-held HMAC key

    Returns:
        True if the signature matches, False otherwise
    """
    if not isinstance(signature, (str, bytes)):
        return False
    expected = compute_signature(canonical, secret_key)
    return constant_time_compare(expected, signature)


def sign_payload(payload: Union[str, Dict[str, Any]], timestamp: Any, secret_key: Union[str, bytes]) -> str:
    """
    Sign a payload the way a relay client does.

    Raises:
        ParseError: If the payload is not a JSON object
    """
    return compute_signature(canonicalize_payload(payload, timestamp), secret_key)
