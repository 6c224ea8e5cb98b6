"""Typed failures raised at the upstream gateway boundary.

Routes map each kind to an HTTP status; nothing above the gateway ever
sees a raw httpx exception.
"""


class GatewayError(Exception):
    """Base class for all upstream-facing failures."""
    pass


class CredentialError(GatewayError):
    """Cookies missing, structurally invalid, or rejected upstream (401/403).

    Never retried automatically; the user has to paste fresh cookies.
    """
    pass


class RateLimitError(GatewayError):
    """Upstream answered 429. Transient, does not affect credential status."""
    pass


class UpstreamError(GatewayError):
    """Any other non-2xx response, or a transport failure.

    Attributes:
        status_code: Upstream HTTP status, or None for transport failures.
        body: Raw response body text (may be empty).
    """

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def excerpt(self, limit: int = 200) -> str:
        """Body text trimmed for diagnostics."""
        body = (self.body or "").strip()
        if len(body) <= limit:
            return body
        return body[:limit] + "..."
