"""Cookie-authenticated gateway to the Gemini generateContent endpoint.

Every call is signed with a freshly computed SAPISIDHASH. Transport and
HTTP failures are translated into the typed errors in ``backend.core.errors``:
401/403 -> CredentialError, 429 -> RateLimitError, anything else non-2xx
(or a dropped connection) -> UpstreamError.
"""

import os
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from backend.api.schemas import MessageRecord
from backend.core.cookies import REQUIRED_TOKENS, has_required_tokens, sanitize_cookie_string
from backend.core.errors import CredentialError, RateLimitError, UpstreamError
from backend.core.framer import build_chat_payload, build_tts_payload
from backend.core.signer import GEMINI_ORIGIN, create_sapisid_hash

logger = structlog.get_logger(__name__)

DEFAULT_CHAT_ENDPOINT = (
    "https://generativelanguage.googleapis.com/app/v1beta/models/"
    "gemini-2.0-flash-exp:generateContent?alt=json"
)
GEMINI_REFERER = "https://gemini.google.com/app"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36"
)
VALIDATION_PROBE = "Ping"


@dataclass
class ChatResult:
    """Parsed chat reply.

    Attributes:
        text: Concatenated candidate text, empty if none was found.
        raw: Decoded JSON body as returned upstream.
    """
    text: str
    raw: Any = None


@dataclass
class SpeechResult:
    """Parsed speech reply. Both fields are None when no audio came back."""
    audio_base64: str | None
    mime_type: str | None
    raw: Any = None

    @property
    def available(self) -> bool:
        return bool(self.audio_base64 and self.mime_type)


@dataclass
class ValidationOutcome:
    valid: bool
    message: str | None = None


def assert_required_cookies(cookies: str | None) -> None:
    """Reject structurally unusable cookies before any network call.

    Raises:
        CredentialError: If the string is empty or a required token is missing.
    """
    if not cookies or not cookies.strip():
        logger.warning("gateway.cookies_empty")
        raise CredentialError("Missing cookie string. Please paste your Gemini session cookies.")

    if not has_required_tokens(cookies):
        logger.warning("gateway.cookies_incomplete", cookie_len=len(cookies))
        raise CredentialError(
            "Please paste valid Gemini cookies from gemini.google.com. "
            f"Cookies must include the {' and '.join(REQUIRED_TOKENS)} tokens."
        )


def parse_text(data: Any) -> str:
    """Extract reply text from the nested candidates/content/parts shape.

    Returns the joined text of the first candidate that has any, then falls
    back to a top-level ``text`` field, then to an empty string.
    """
    if not isinstance(data, dict):
        return ""

    candidates = data.get("candidates")
    if isinstance(candidates, list):
        for candidate in candidates:
            parts = _candidate_parts(candidate)
            texts = [
                part.get("text") or part.get("generated_text") or ""
                for part in parts
                if isinstance(part, dict)
            ]
            text = "\n".join(t for t in texts if isinstance(t, str) and t)
            if text:
                return text

    if isinstance(data.get("text"), str):
        return data["text"]

    return ""


def parse_audio(data: Any) -> tuple[str | None, str | None]:
    """Return ``(base64_data, mime_type)`` of the first audio part, or ``(None, None)``.

    Only the first candidate is inspected. Parts may carry ``mimeType``
    directly or inside ``inlineData``.
    """
    if not isinstance(data, dict):
        return None, None

    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return None, None

    for part in _candidate_parts(candidates[0]):
        if not isinstance(part, dict):
            continue
        blob = part.get("inlineData") if isinstance(part.get("inlineData"), dict) else part
        mime_type = blob.get("mimeType")
        if isinstance(mime_type, str) and mime_type.startswith("audio/"):
            audio = blob.get("data")
            if audio:
                return audio, mime_type

    return None, None


def _candidate_parts(candidate: Any) -> list:
    if not isinstance(candidate, dict):
        return []
    content = candidate.get("content")
    if not isinstance(content, dict):
        return []
    parts = content.get("parts")
    return parts if isinstance(parts, list) else []


class GeminiGateway:
    """Signs and sends chat / speech requests on behalf of a cookie holder."""

    def __init__(self, client: httpx.AsyncClient | None = None):
        self.chat_endpoint = os.environ.get("GEMINI_CHAT_ENDPOINT", DEFAULT_CHAT_ENDPOINT)
        self.tts_endpoint = os.environ.get("GEMINI_TTS_ENDPOINT", self.chat_endpoint)
        self.user_agent = os.environ.get("GEMINI_USER_AGENT", DEFAULT_USER_AGENT)
        self.timeout = float(os.environ.get("GEMINI_TIMEOUT", "60"))

        self.generation_config = {
            "temperature": float(os.environ.get("GEMINI_TEMPERATURE", "0.7")),
            "topP": float(os.environ.get("GEMINI_TOP_P", "0.8")),
            "topK": int(os.environ.get("GEMINI_TOP_K", "40")),
            "maxOutputTokens": int(os.environ.get("GEMINI_MAX_OUTPUT_TOKENS", "1024")),
        }

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self.timeout)

    def is_healthy(self) -> bool:
        """True while the underlying HTTP client is usable."""
        return not self._client.is_closed

    async def aclose(self) -> None:
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    def build_headers(self, cookies: str) -> dict[str, str]:
        """Transport headers for one call, including a fresh signature.

        Raises:
            CredentialError: If no signing token can be resolved.
        """
        sanitized = sanitize_cookie_string(cookies)
        signature = create_sapisid_hash(sanitized)

        return {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
            "Cookie": sanitized,
            "Origin": GEMINI_ORIGIN,
            "Referer": GEMINI_REFERER,
            "User-Agent": self.user_agent,
            "Authorization": f"SAPISIDHASH {signature}",
            "x-origin": GEMINI_ORIGIN,
            "x-goog-authuser": "0",
            "Sec-Fetch-Site": "same-site",
            "Sec-Fetch-Mode": "cors",
            "Sec-Fetch-Dest": "empty",
        }

    async def _post(self, cookies: str, payload: dict[str, Any], endpoint: str) -> Any:
        """Issue one signed POST and decode the JSON body.

        Returns:
            Decoded JSON, or None if a 2xx body was not JSON.

        Raises:
            CredentialError: Cookies unusable locally, or upstream 401/403.
            RateLimitError: Upstream 429.
            UpstreamError: Other non-2xx status or transport failure.
        """
        assert_required_cookies(cookies)
        headers = self.build_headers(cookies)

        logger.info("gateway.request", endpoint=endpoint.split("?")[0],
                    turns=len(payload.get("contents", [])))

        try:
            response = await self._client.post(endpoint, headers=headers, json=payload)
        except httpx.HTTPError as e:
            logger.error("gateway.transport_failed", error=str(e))
            raise UpstreamError(f"Gemini request failed: {e}") from e

        status = response.status_code
        logger.info("gateway.response", status=status)

        if status in (401, 403):
            logger.warning("gateway.auth_failed", status=status)
            raise CredentialError("Cookies expired or invalid. Please refresh them from gemini.google.com.")

        if status == 429:
            logger.warning("gateway.rate_limited")
            raise RateLimitError("Too many requests. Please try again later.")

        if not response.is_success:
            body = response.text
            logger.error("gateway.upstream_failed", status=status, body=body[:500])
            raise UpstreamError(f"Gemini request failed ({status})", status_code=status, body=body)

        try:
            return response.json()
        except ValueError:
            logger.warning("gateway.non_json_body", status=status, body_len=len(response.text))
            return None

    async def chat(
        self,
        cookies: str,
        message: str,
        history: Iterable[MessageRecord] = (),
    ) -> ChatResult:
        """Send one chat turn with prior history and return the reply text."""
        history = list(history)
        logger.info("gateway.chat", msg_len=len(message), history=len(history))

        payload = build_chat_payload(history, message, self.generation_config)
        data = await self._post(cookies, payload, self.chat_endpoint)

        text = parse_text(data)
        if not text:
            logger.warning("gateway.empty_text")
        return ChatResult(text=text, raw=data)

    async def synthesize_speech(self, cookies: str, text: str) -> SpeechResult:
        """Ask for audio output. Missing audio yields a result with both fields None."""
        data = await self._post(cookies, build_tts_payload(text), self.tts_endpoint)

        audio_base64, mime_type = parse_audio(data)
        if audio_base64 is None:
            logger.warning("gateway.no_audio")
        return SpeechResult(audio_base64=audio_base64, mime_type=mime_type, raw=data)

    async def validate(self, cookies: str) -> ValidationOutcome:
        """Probe the credential with a throwaway chat turn.

        The probe exchange is discarded; only pass/fail is reported.
        """
        try:
            await self.chat(cookies, VALIDATION_PROBE, [])
        except CredentialError as e:
            return ValidationOutcome(valid=False, message=str(e))
        except Exception as e:
            logger.warning("gateway.validate_failed", error=str(e))
            return ValidationOutcome(valid=False, message=str(e) or "Failed to validate cookies. Please try again.")
        return ValidationOutcome(valid=True)
