"""Razorpay webhook signature verification.

Razorpay signs the raw request body with HMAC-SHA256 using the webhook secret
and sends the hex digest in `X-Razorpay-Signature`. Verification fails closed:
no secret, no header, anything other than 64 lowercase hex digits, or a
mismatch returns False.
"""

import hashlib
import hmac
import re

from tutorhub.common.logging import logger


_HEX_DIGEST = re.compile(r"[0-9a-f]{64}")


def compute_signature(body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of `body`, as the gateway computes it."""

    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: str | None, secret: str) -> bool:
    if not secret:
        logger.warning("webhook secret not configured; rejecting delivery")
        return False
    if not signature:
        return False
    if _HEX_DIGEST.fullmatch(signature) is None:
        return False
    provided = bytes.fromhex(signature)
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return hmac.compare_digest(expected, provided)
