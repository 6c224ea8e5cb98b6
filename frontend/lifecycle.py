"""Credential lifecycle state machine.

States: unknown, valid, invalid, expired, plus ``None`` before any cookies
exist. Events move the state one way:

    paste (unvalidated)        -> unknown
    paste + successful probe   -> valid
    upstream 2xx               -> valid   (never out of invalid)
    upstream 401/403           -> invalid
    valid past the threshold   -> expired
    logout                     -> None

Only a fresh paste leaves ``invalid``.
"""

import os
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

import structlog

logger = structlog.get_logger(__name__)

COOKIE_REFRESH_THRESHOLD = timedelta(hours=float(os.environ.get("COOKIE_REFRESH_THRESHOLD_HOURS", "12")))

MISSING_MESSAGE = "Please paste your Gemini cookies to start chatting."
INVALID_MESSAGE = "Your Gemini cookies were rejected. Please refresh your cookies from gemini.google.com."
EXPIRED_MESSAGE = "Your Gemini cookies may have expired. Please refresh your cookies to continue."


class CredentialStatus(str, Enum):
    UNKNOWN = "unknown"
    VALID = "valid"
    INVALID = "invalid"
    EXPIRED = "expired"


@dataclass
class GateVerdict:
    """Whether a request may go out, and what to tell the user if not.

    Attributes:
        allowed: True for fresh-valid or unknown credentials.
        reason: "missing", "invalid" or "expired" when blocked.
        message: User-facing prompt when blocked.
    """
    allowed: bool
    reason: str | None = None
    message: str | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def are_cookies_stale(
    reference: datetime | None,
    threshold: timedelta = COOKIE_REFRESH_THRESHOLD,
    now: datetime | None = None,
) -> bool:
    """True if ``reference`` is missing or older than ``threshold``."""
    if reference is None:
        return True
    now = now or _utcnow()
    return now - reference > threshold


class CredentialLifecycle:
    """Holds the in-memory credential and its status."""

    def __init__(
        self,
        threshold: timedelta = COOKIE_REFRESH_THRESHOLD,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.threshold = threshold
        self._clock = clock
        self.cookies: str | None = None
        self.set_at: datetime | None = None
        self.validated_at: datetime | None = None
        self.status: CredentialStatus | None = None

    @property
    def reference_time(self) -> datetime | None:
        """Last validation time, or when the cookies were set if never validated."""
        return self.validated_at or self.set_at

    @property
    def is_authenticated(self) -> bool:
        return self.cookies is not None and self.status in (CredentialStatus.VALID, CredentialStatus.UNKNOWN)

    def set_credential(self, cookies: str, validated: bool = False) -> None:
        """A fresh paste. The only way out of ``invalid``."""
        now = self._clock()
        self.cookies = cookies
        self.set_at = now
        self.validated_at = now if validated else None
        self.status = CredentialStatus.VALID if validated else CredentialStatus.UNKNOWN
        logger.info("lifecycle.credential_set", status=self.status.value, cookie_len=len(cookies))

    def restore(
        self,
        cookies: str | None,
        set_at: datetime | None,
        validated_at: datetime | None,
        status: CredentialStatus | None,
    ) -> None:
        """Load previously persisted fields without treating them as an event."""
        self.cookies = cookies
        self.set_at = set_at
        self.validated_at = validated_at
        self.status = status

    def mark_validated(self) -> bool:
        """Record a successful upstream exchange.

        Returns:
            False if ignored (no cookies, or the credential is ``invalid``).
        """
        if self.cookies is None:
            return False
        if self.status == CredentialStatus.INVALID:
            logger.info("lifecycle.validation_ignored", status=self.status.value)
            return False

        now = self._clock()
        self.status = CredentialStatus.VALID
        self.validated_at = now
        self.set_at = self.set_at or now
        return True

    def mark_invalid(self) -> None:
        """Upstream rejected the credential."""
        if self.status != CredentialStatus.INVALID:
            logger.warning("lifecycle.invalid", previous=self.status.value if self.status else None)
        self.status = CredentialStatus.INVALID

    def should_refresh(self) -> bool:
        return are_cookies_stale(self.reference_time, self.threshold, self._clock())

    def check_staleness(self) -> bool:
        """Demote a stale ``valid`` credential to ``expired``.

        Returns:
            True if the status changed.
        """
        if self.status != CredentialStatus.VALID or not self.should_refresh():
            return False
        logger.info("lifecycle.expired", reference=self.reference_time.isoformat() if self.reference_time else None)
        self.status = CredentialStatus.EXPIRED
        return True

    def gate(self) -> GateVerdict:
        """Decide whether a chat or speech request may be attempted."""
        if self.cookies is None:
            return GateVerdict(False, "missing", MISSING_MESSAGE)
        if self.status == CredentialStatus.INVALID:
            return GateVerdict(False, "invalid", INVALID_MESSAGE)

        self.check_staleness()
        if self.status == CredentialStatus.EXPIRED:
            return GateVerdict(False, "expired", EXPIRED_MESSAGE)

        return GateVerdict(True)

    def clear(self) -> None:
        self.cookies = None
        self.set_at = None
        self.validated_at = None
        self.status = None
        logger.info("lifecycle.cleared")
