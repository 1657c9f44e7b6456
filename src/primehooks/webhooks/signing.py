"""HMAC-SHA256 signing for outbound webhook bodies."""

import hashlib
import hmac
import json
from typing import Any

SIGNATURE_PREFIX = "sha256="
SIGNATURE_VERSION = "v1"


def serialize_body(body: dict[str, Any]) -> str:
    """Serialize a request body to the exact JSON text that gets signed and sent."""
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False, default=str)


def sign_payload(payload: str | bytes, secret: str) -> str:
    """Compute the HMAC-SHA256 hex digest of a serialized body."""
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def signature_header(payload: str | bytes, secret: str) -> str:
    return f"{SIGNATURE_PREFIX}{sign_payload(payload, secret)}"


def verify_signature(payload: str | bytes, signature: str, secret: str) -> bool:
    """Check an ``X-Signature`` value (with or without the ``sha256=`` prefix)."""
    if signature.startswith(SIGNATURE_PREFIX):
        signature = signature[len(SIGNATURE_PREFIX):]
    return hmac.compare_digest(sign_payload(payload, secret), signature)
