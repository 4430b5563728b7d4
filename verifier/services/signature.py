"""
Webhook signature validation.

GitHub signs each delivery with ``sha256=<hex HMAC-SHA256(secret, raw body)>``
in the X-Hub-Signature-256 header. Validation runs on the raw request bytes
before anything is parsed or stored.
"""

import hashlib
import hmac
from typing import Optional

SIGNATURE_PREFIX = "sha256="


def compute_signature(secret: str, payload: bytes) -> str:
    """
    Compute the signature header value for a payload.

    Args:
        secret: Shared webhook secret
        payload: Raw request body

    Returns:
        Header value of the form ``sha256=<hex digest>``
    """
    digest = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


class SignatureValidator:
    """Accept/reject decision for inbound webhook deliveries."""

    def __init__(self, secret: str):
        self._secret = secret

    @property
    def configured(self) -> bool:
        return bool(self._secret)

    def validate(self, payload: bytes, signature: Optional[str]) -> bool:
        """
        Verify webhook signature for security.

        A mismatch is an ordinary outcome and returns False; this never
        raises for bad input.

        Args:
            payload: Raw request payload, exactly as received
            signature: Value of the X-Hub-Signature-256 header

        Returns:
            True if signature is valid, False otherwise
        """
        if not self._secret or not signature:
            return False

        expected_signature = compute_signature(self._secret, payload)

        # Compare signatures (constant-time comparison)
        return hmac.compare_digest(
            signature.encode(), expected_signature.encode()
        )
