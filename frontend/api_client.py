"""Async client for the local chat service.

Maps service status codes back into typed errors so the controller can
drive credential lifecycle transitions without looking at HTTP details.
A fresh httpx client is opened per call so each call is safe to run on
whatever event loop the UI happens to use.
"""

import os
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from frontend.models import Message

logger = structlog.get_logger(__name__)


class ApiError(Exception):
    """Service call failed. ``status_code`` is None for transport failures."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class CredentialRejectedError(ApiError):
    """401: cookies missing, malformed or rejected upstream."""
    pass


class RateLimitedError(ApiError):
    """429: transient, safe to retry later."""
    pass


class ServiceError(ApiError):
    """400, 5xx, or the service could not be reached."""
    pass


@dataclass
class SpeechOutcome:
    """TTS result. ``unavailable`` is the non-error "no audio produced" case."""
    audio_url: str | None
    unavailable: bool = False
    message: str | None = None


class ServiceClient:
    """Talks to the FastAPI backend's /api endpoints."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or os.environ.get("API_URL", "http://localhost:8000")).rstrip("/")
        self.timeout = timeout if timeout is not None else float(os.environ.get("API_TIMEOUT", "90"))
        self._transport = transport

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(path, json=body)
        except httpx.HTTPError as e:
            logger.error("client.transport_failed", path=path, error=str(e))
            raise ServiceError(f"Cannot reach the chat service: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_success:
            return data

        message = data.get("error") if isinstance(data, dict) else None
        message = message or f"Request failed ({response.status_code})"
        logger.warning("client.request_failed", path=path, status=response.status_code)

        if response.status_code == 401:
            raise CredentialRejectedError(message, response.status_code)
        if response.status_code == 429:
            raise RateLimitedError(message, response.status_code)
        raise ServiceError(message, response.status_code)

    async def chat(self, message: str, history: Sequence[Message], cookies: str) -> str:
        """Send one turn; returns the reply text (possibly empty)."""
        body = {
            "message": message,
            "conversationHistory": [m.model_dump(mode="json", by_alias=True) for m in history],
            "cookies": cookies,
        }
        data = await self._post("/api/chat", body)
        return data.get("response") or ""

    async def tts(self, text: str, cookies: str) -> SpeechOutcome:
        data = await self._post("/api/tts", {"text": text, "cookies": cookies})
        if data.get("success") and data.get("audioUrl"):
            return SpeechOutcome(audio_url=data["audioUrl"])
        return SpeechOutcome(audio_url=None, unavailable=True, message=data.get("error"))

    async def validate(self, cookies: str) -> tuple[bool, str | None]:
        data = await self._post("/api/auth/validate", {"cookies": cookies})
        return bool(data.get("valid")), data.get("message")
