"""HMAC signature verification for GitHub webhooks."""

import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)

SUPPORTED_ALGORITHMS = ("sha1", "sha256")

SIGNATURE_HEADERS = {
    "sha1": "X-Hub-Signature",
    "sha256": "X-Hub-Signature-256",
}


def signature_header(algorithm: str) -> str:
    """Return the request header GitHub uses for ``algorithm``."""
    return SIGNATURE_HEADERS[algorithm]


def sign(body: bytes, secret: str, algorithm: str = "sha256") -> str:
    """Compute a GitHub style signature (``<algorithm>=<hexdigest>``).

    Args:
        body: Raw request body
        secret: Shared webhook secret
        algorithm: Digest name, one of SUPPORTED_ALGORITHMS

    Returns:
        Signature string as sent in the signature header
    """
    digest = hmac.new(secret.encode(), body, getattr(hashlib, algorithm)).hexdigest()
    return f"{algorithm}={digest}"


def verify_signature(
    body: bytes,
    secret: str | None,
    signature: str | None,
    algorithm: str = "sha256",
) -> bool:
    """Verify a GitHub webhook signature in constant time.

    Never raises: a missing secret, a missing or malformed signature, or an
    unsupported algorithm all count as "not verified".

    Args:
        body: Raw request body
        secret: Shared webhook secret
        signature: Signature header value
        algorithm: Digest name, one of SUPPORTED_ALGORITHMS

    Returns:
        True if the signature is valid
    """
    if not secret:
        logger.warning("Webhook secret not configured, rejecting request")
        return False

    if algorithm not in SUPPORTED_ALGORITHMS:
        logger.warning(f"Unsupported signature algorithm: {algorithm}")
        return False

    if not signature:
        logger.warning("No signature provided in webhook request")
        return False

    expected = sign(body, secret, algorithm)

    try:
        matches = hmac.compare_digest(signature.encode(), expected.encode())
    except UnicodeEncodeError:
        matches = False

    if not matches:
        logger.warning("Webhook signature mismatch")

    return matches
