"""At-rest encryption for the cookie string.

The key is derived from a passphrase shipped with the client, so this is
obfuscation rather than confidentiality: anyone who can run the client
can decrypt.
"""

import base64
import hashlib
import os

import structlog
from cryptography.fernet import Fernet, InvalidToken

logger = structlog.get_logger(__name__)

DEFAULT_SECRET = "gemini-chat-cookie-secret"


def derive_key(secret: str) -> bytes:
    """32-byte urlsafe Fernet key from an arbitrary passphrase."""
    return base64.urlsafe_b64encode(hashlib.sha256(secret.encode("utf-8")).digest())


class CookieVault:
    """Encrypts and decrypts cookie strings with a passphrase-derived key."""

    def __init__(self, secret: str | None = None):
        secret = secret or os.environ.get("COOKIE_ENCRYPTION_SECRET", DEFAULT_SECRET)
        self._fernet = Fernet(derive_key(secret))

    def encrypt(self, cookie_string: str) -> str:
        return self._fernet.encrypt(cookie_string.encode("utf-8")).decode("ascii")

    def decrypt(self, encrypted: str) -> str:
        """Plaintext cookies, or an empty string if the token cannot be read."""
        try:
            return self._fernet.decrypt(encrypted.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError, ValueError) as e:
            logger.warning("vault.decrypt_failed", error=type(e).__name__)
            return ""
