"""HMAC-SHA256 verification of Meta webhook deliveries.

Meta signs the exact request body with the app secret and sends the hex
digest as ``x-hub-signature-256: sha256=<hex>``. The digest must be checked
against the raw bytes; re-serialized JSON is not byte-identical.
"""

from __future__ import annotations

import hashlib
import hmac

SIGNATURE_HEADER = "x-hub-signature-256"
_PREFIX = "sha256="


def sign_body(body: bytes, app_secret: str) -> str:
    """Return the header value Meta would send for ``body``."""
    digest = hmac.new(app_secret.encode(), body, hashlib.sha256).hexdigest()
    return f"{_PREFIX}{digest}"


def verify_signature(
    body: bytes, signature_header: str | None, app_secret: str | None,
) -> bool:
    """Return True only if the header carries the body's HMAC under app_secret.

    Never raises: a missing header or secret, a missing prefix, or an
    undecodable hex digest is a failed verification.
    """
    if not signature_header or not app_secret:
        return False
    if not signature_header.startswith(_PREFIX):
        return False

    try:
        provided = bytes.fromhex(signature_header[len(_PREFIX):])
    except ValueError:
        return False

    expected = hmac.new(app_secret.encode(), body, hashlib.sha256).digest()
    return hmac.compare_digest(expected, provided)
