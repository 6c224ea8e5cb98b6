"""SAPISIDHASH request signing.

The upstream accepts ``Authorization: SAPISIDHASH <ts>_<sha1>`` where the
digest covers the timestamp, one session cookie and the service origin.
The timestamp is part of the hash input, so a value is only good for the
call it was computed for.
"""

import hashlib
import time

import structlog

from backend.core.cookies import get_cookie_value, sanitize_cookie_string
from backend.core.errors import CredentialError

logger = structlog.get_logger(__name__)

GEMINI_ORIGIN = "https://gemini.google.com"

# Preferred name first, then the legacy fallbacks.
SIGNING_TOKEN_NAMES = ("SAPISID", "__Secure-3PSID", "__Secure-1PSID")


def resolve_signing_token(cookies: str) -> str:
    """Return the first signing token present in ``cookies``.

    Raises:
        CredentialError: If none of the candidate tokens resolve.
    """
    sanitized = sanitize_cookie_string(cookies)
    for name in SIGNING_TOKEN_NAMES:
        value = get_cookie_value(sanitized, name)
        if value:
            logger.debug("signer.token_resolved", token_name=name)
            return value

    logger.error("signer.token_missing", tried=list(SIGNING_TOKEN_NAMES))
    raise CredentialError(
        "Required cookie SAPISID/__Secure-1PSID not found. "
        "Please ensure you copied all cookies."
    )


def compute_digest(timestamp: int, token: str, origin: str = GEMINI_ORIGIN) -> str:
    """SHA1 hex of ``"<timestamp> <token> <origin>"``."""
    payload = f"{timestamp} {token} {origin}"
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()


def create_sapisid_hash(
    cookies: str,
    now: float | None = None,
    origin: str = GEMINI_ORIGIN,
) -> str:
    """Build the ``"<timestamp>_<digest>"`` signature for one outgoing call.

    Args:
        cookies: Raw or canonical cookie string.
        now: Unix time override (seconds). Defaults to the current clock.
        origin: Origin URL mixed into the digest.

    Returns:
        Signature value to place after ``SAPISIDHASH`` in the header.

    Raises:
        CredentialError: If no signing token is present.
    """
    token = resolve_signing_token(cookies)
    timestamp = int(time.time() if now is None else now)
    return f"{timestamp}_{compute_digest(timestamp, token, origin)}"
