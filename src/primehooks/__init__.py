"""primehooks: webhooks bound to UI page positions, with signed delivery and health tracking."""

from primehooks.webhooks.signing import serialize_body, sign_payload, signature_header, verify_signature

__all__ = [
    "serialize_body",
    "sign_payload",
    "signature_header",
    "verify_signature",
]
__version__ = "0.1.0"
