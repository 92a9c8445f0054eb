"""HMAC-SHA256 webhook signature verification."""

import hashlib
import hmac

from hookboard.core.logging import get_logger

logger = get_logger(__name__)

SIGNATURE_PREFIX = "sha256="


def compute_signature(body: bytes, secret: str) -> str:
    """Return the ``sha256=<hex>`` signature a sender would attach to body."""
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(body: bytes, signature: str | None, secret: str | None) -> bool:
    """Verify a webhook signature over the raw request body.

    Verification is skipped (treated as valid) when either the header or the
    secret is missing, so unconfigured deployments accept unsigned deliveries.
    Malformed signatures fail closed.

    Args:
        body: Raw request body, exactly as received
        signature: Signature header value, ``sha256=<hex>`` or bare hex
        secret: Shared webhook secret

    Returns:
        True if the signature matches or verification was skipped
    """
    if not secret or not signature:
        logger.warning(
            "webhook.signature.skipped",
            secret_configured=bool(secret),
            header_present=bool(signature),
        )
        return True

    provided_hex = signature.removeprefix(SIGNATURE_PREFIX)
    try:
        provided = bytes.fromhex(provided_hex)
    except ValueError:
        logger.warning("webhook.signature.malformed")
        return False

    expected = hmac.new(secret.encode(), body, hashlib.sha256).digest()
    return hmac.compare_digest(expected, provided)
