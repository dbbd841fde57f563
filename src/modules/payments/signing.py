"""HMAC-SHA256 webhook signatures (hex digest of the raw body)."""

from __future__ import annotations

import hashlib
import hmac


def sign_payload(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
    """Constant-time check; an unset secret rejects everything."""
    if not secret or not signature:
        return False
    candidate = signature.strip()
    if candidate.lower().startswith("sha256="):
        candidate = candidate[len("sha256=") :]
    return hmac.compare_digest(sign_payload(secret, body), candidate.lower())
