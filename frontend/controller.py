"""Chat controller: the single send pathway.

Gate -> frame history -> call the service -> apply the outcome to the store.
At most one chat request is current; a new send (or ``stop``) cancels the
previous one, and a superseded request's late result is dropped.
"""

import asyncio

import structlog

from backend.core.cookies import REQUIRED_TOKENS, has_required_tokens, sanitize_cookie_string
from frontend.api_client import ApiError, CredentialRejectedError, ServiceClient
from frontend.history import build_history_payload
from frontend.lifecycle import INVALID_MESSAGE
from frontend.reminders import parse_reminder_patterns
from frontend.store import ChatStore

logger = structlog.get_logger(__name__)


class ChatController:
    """Owns the in-flight request and applies results to a ``ChatStore``."""

    def __init__(self, store: ChatStore, client: ServiceClient | None = None):
        self.store = store
        self.client = client or ServiceClient()
        self._inflight: asyncio.Task | None = None

    @property
    def has_inflight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def _cancel_inflight(self) -> None:
        if self._inflight is not None and not self._inflight.done():
            logger.info("controller.cancel_inflight")
            self._inflight.cancel()
        self._inflight = None

    def stop(self) -> None:
        """Stop button: cancel the current request and clear loading."""
        self._cancel_inflight()
        self.store.set_loading(False)

    async def send_message(
        self,
        content: str,
        origin: str | None = None,
        parse_reminders: bool = True,
    ) -> str | None:
        """Send ``content`` as a new user turn.

        Returns:
            The reply text, or None if blocked, failed, cancelled or superseded.
        """
        verdict = self.store.gate_request()
        if not verdict.allowed:
            return None

        conversation_id = self.store.current_conversation_id
        if self.store.get_conversation(conversation_id) is None:
            conversation_id = self.store.create_conversation()

        self.store.add_message(conversation_id, "user", content, origin=origin)

        if parse_reminders:
            for pattern in parse_reminder_patterns(content):
                self.store.add_reminder(**pattern)

        placeholder = self.store.add_message(conversation_id, "assistant", "", is_streaming=True, origin=origin)
        history = build_history_payload(self.store.get_conversation(conversation_id).messages)

        self._cancel_inflight()
        self.store.set_loading(True)
        self.store.set_error(None)

        logger.info("controller.send", conversation_id=conversation_id, history=len(history), origin=origin)
        task = asyncio.create_task(self.client.chat(content, history, self.store.cookies))
        self._inflight = task

        try:
            text = await task
        except asyncio.CancelledError:
            if asyncio.current_task().cancelling():
                self._release(task)
                raise
            logger.info("controller.request_cancelled", conversation_id=conversation_id)
            return None
        except ApiError as e:
            if self._release(task):
                self._apply_failure(conversation_id, placeholder.id, e)
            return None
        except Exception:
            self._release(task)
            raise

        if not self._release(task):
            logger.info("controller.late_result_ignored", conversation_id=conversation_id)
            return None

        self.store.update_message(conversation_id, placeholder.id, content=text, is_streaming=False)
        self.store.mark_cookies_validated()
        return text

    def _release(self, task: asyncio.Task) -> bool:
        """Free the in-flight slot if ``task`` still owns it."""
        if self._inflight is not task:
            return False
        self._inflight = None
        self.store.set_loading(False)
        return True

    def _apply_failure(self, conversation_id: str, message_id: str, error: ApiError) -> None:
        if isinstance(error, CredentialRejectedError):
            self.store.mark_cookies_invalid()
            message = str(error) or INVALID_MESSAGE
        else:
            message = str(error)

        logger.warning("controller.send_failed", status=error.status_code, kind=type(error).__name__)
        self.store.set_error(message)
        self.store.update_message(conversation_id, message_id, content=f"Error: {error}", is_streaming=False)

    async def speak(self, text: str) -> str | None:
        """Synthesize ``text``. Returns an audio data URL, or None."""
        verdict = self.store.gate_request()
        if not verdict.allowed:
            return None

        try:
            outcome = await self.client.tts(text, self.store.cookies)
        except CredentialRejectedError as e:
            self.store.mark_cookies_invalid()
            self.store.set_error(str(e) or INVALID_MESSAGE)
            return None
        except ApiError as e:
            self.store.set_error(str(e))
            return None

        self.store.mark_cookies_validated()
        if outcome.unavailable:
            logger.info("controller.audio_unavailable")
            self.store.set_error(outcome.message or "No audio data received.")
            return None
        return outcome.audio_url

    async def login(self, raw: str, validate: bool = True) -> bool:
        """Check pasted cookies locally, optionally probe upstream, then store them."""
        cleaned = sanitize_cookie_string(raw)
        if not cleaned:
            self.store.set_error("Please paste your Gemini session cookies.")
            return False
        if not has_required_tokens(cleaned):
            self.store.set_error(
                "Please paste valid Gemini cookies from gemini.google.com. "
                f"Cookies must include the {' and '.join(REQUIRED_TOKENS)} tokens."
            )
            return False

        if not validate:
            self.store.set_cookies(cleaned, validated=False)
            return True

        try:
            valid, message = await self.client.validate(cleaned)
        except ApiError as e:
            self.store.set_error(str(e))
            return False

        if not valid:
            logger.info("controller.login_rejected")
            self.store.set_error(message or "Failed to validate cookies. Please try again.")
            return False

        self.store.set_cookies(cleaned, validated=True)
        return True

    def logout(self) -> None:
        self._cancel_inflight()
        self.store.logout()
