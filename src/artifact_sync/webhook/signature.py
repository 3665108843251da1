"""GitHub webhook signature verification.

GitHub signs every delivery with HMAC-SHA256 over the raw request body,
keyed with the webhook secret, and sends the hex digest in the
``X-Hub-Signature-256`` header as ``sha256=<hex>``.

A missing header, a wrong prefix, a non-hex digest and a wrong digest
are all reported the same way (no signature), so a caller cannot probe
which part of its request was rejected.
"""

import hashlib
import hmac
import re
from typing import Optional

SIGNATURE_HEADER = "X-Hub-Signature-256"
SIGNATURE_PREFIX = "sha256="

_HEX_RE = re.compile(r"[0-9a-fA-F]*")


def extract_signature(header_value: Optional[str]) -> Optional[bytes]:
    """Decode the digest carried by an ``X-Hub-Signature-256`` value.

    Args:
        header_value: Raw header value, or None when the header is absent.

    Returns:
        The decoded digest bytes, or None when the header is missing,
        lacks the ``sha256=`` prefix, or is not strictly hex encoded.
    """
    if header_value is None or not header_value.startswith(SIGNATURE_PREFIX):
        return None

    digest = header_value[len(SIGNATURE_PREFIX) :]
    if len(digest) % 2 or not _HEX_RE.fullmatch(digest):
        return None
    return bytes.fromhex(digest)


def compute_signature(payload: bytes, secret: bytes) -> bytes:
    """Compute the raw HMAC-SHA256 digest of *payload* keyed with *secret*."""
    return hmac.new(secret, payload, hashlib.sha256).digest()


def verify_signature(payload: bytes, secret: bytes, signature: bytes) -> bool:
    """Check that *signature* is the HMAC-SHA256 of *payload* under *secret*.

    Uses constant-time comparison to prevent timing attacks.
    """
    return hmac.compare_digest(compute_signature(payload, secret), signature)
