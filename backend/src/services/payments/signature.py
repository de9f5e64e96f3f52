"""
Webhook signature verification.

The gateway signs each callback with a lowercase hex HMAC-SHA256 of the raw
request body, keyed by the account's webhook salt.
"""

import hashlib
import hmac
from typing import Mapping, Optional

SIGNATURE_HEADERS = ("x-hitpay-hmac-sha256", "hmac-sha256")


def compute_signature(raw_body: bytes, salt: str) -> str:
    return hmac.new(salt.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_signature(raw_body: bytes, signature: Optional[str], salt: str) -> bool:
    """
    Check a webhook signature in constant time.

    Args:
        raw_body: Request body exactly as received
        signature: Hex digest from the signature header
        salt: Shared webhook salt

    Returns:
        True only when both salt and signature are present and match
    """
    if not salt or not signature:
        return False

    expected = compute_signature(raw_body, salt)
    return hmac.compare_digest(expected, signature.strip().lower())


def extract_signature(headers: Mapping[str, str]) -> Optional[str]:
    """Return the first signature header present, matching names case-insensitively."""
    lowered = {key.lower(): value for key, value in headers.items()}
    for name in SIGNATURE_HEADERS:
        value = lowered.get(name)
        if value:
            return value
    return None
