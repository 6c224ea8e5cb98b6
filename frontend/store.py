"""Client state owner.

One ``ChatStore`` holds the credential lifecycle, conversations, reminders
and UI flags. State changes only through its command methods; each command
notifies subscribers and, for persisted fields, writes the state document
back to storage.
"""

import time
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from pydantic import ValidationError

from backend.core.cookies import sanitize_cookie_string
from frontend import storage
from frontend.lifecycle import (
    COOKIE_REFRESH_THRESHOLD,
    CredentialLifecycle,
    CredentialStatus,
    GateVerdict,
)
from frontend.models import Conversation, Message, PersistedState, Reminder
from frontend.vault import CookieVault

logger = structlog.get_logger(__name__)

STORAGE_KEY = "gemini-chat-storage"
DEFAULT_TITLE = "New Chat"
TITLE_LENGTH = 30

Listener = Callable[["ChatStore"], None]


def _new_id(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatStore:
    """Observable client state with persistence."""

    def __init__(
        self,
        vault: CookieVault | None = None,
        storage_key: str = STORAGE_KEY,
        persist: bool = True,
        threshold: timedelta = COOKIE_REFRESH_THRESHOLD,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.vault = vault or CookieVault()
        self.storage_key = storage_key
        self.persist = persist
        self._clock = clock
        self.lifecycle = CredentialLifecycle(threshold=threshold, clock=clock)

        self.encrypted_cookies: str | None = None
        self.current_conversation_id: str | None = None
        self.conversations: list[Conversation] = []
        self.reminders: list[Reminder] = []
        self.theme = "dark"
        self.is_loading = False
        self.error: str | None = None

        self._listeners: list[Listener] = []

    # Observation

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, persist: bool = True) -> None:
        if persist:
            self.save()
        for listener in list(self._listeners):
            listener(self)

    # Credential

    @property
    def cookies(self) -> str | None:
        return self.lifecycle.cookies

    @property
    def cookie_status(self) -> CredentialStatus | None:
        return self.lifecycle.status

    @property
    def cookies_set_at(self) -> datetime | None:
        return self.lifecycle.set_at

    @property
    def last_validated_at(self) -> datetime | None:
        return self.lifecycle.validated_at

    @property
    def is_authenticated(self) -> bool:
        return self.lifecycle.is_authenticated

    def set_cookies(self, raw: str, validated: bool = False) -> None:
        """Store freshly pasted cookies (sanitized, encrypted at rest)."""
        sanitized = sanitize_cookie_string(raw)
        self.lifecycle.set_credential(sanitized, validated=validated)
        self.encrypted_cookies = self.vault.encrypt(sanitized)
        self.error = None
        self._commit()

    def refresh_decrypted_cookies(self) -> None:
        """Re-derive the in-memory cookies from the encrypted copy."""
        if not self.encrypted_cookies:
            self.lifecycle.clear()
            self._commit()
            return

        decrypted = self.vault.decrypt(self.encrypted_cookies)
        if decrypted:
            self.lifecycle.cookies = decrypted
        else:
            self._discard_undecryptable()
        self._commit()

    def _discard_undecryptable(self) -> None:
        self.encrypted_cookies = None
        self.lifecycle.restore(None, None, None, CredentialStatus.INVALID)

    def set_cookie_status(self, status: CredentialStatus | None) -> None:
        """Force a status. Leaving ``invalid`` still requires ``set_cookies``."""
        if self.cookie_status == CredentialStatus.INVALID and status != CredentialStatus.INVALID:
            logger.warning("store.status_change_refused", requested=status.value if status else None)
            return
        if status == CredentialStatus.VALID:
            self.lifecycle.mark_validated()
        elif status == CredentialStatus.INVALID:
            self.lifecycle.mark_invalid()
        else:
            self.lifecycle.status = status
        self._commit()

    def mark_cookies_validated(self) -> None:
        if self.lifecycle.mark_validated():
            self._commit()

    def mark_cookies_invalid(self) -> None:
        self.lifecycle.mark_invalid()
        self._commit()

    def should_refresh_cookies(self) -> bool:
        return self.lifecycle.should_refresh()

    def check_staleness(self) -> bool:
        """Demote a stale valid credential to expired. True if it changed."""
        changed = self.lifecycle.check_staleness()
        if changed:
            self._commit()
        return changed

    def gate_request(self) -> GateVerdict:
        """Consult the lifecycle before any chat/speech call.

        A blocked verdict is also written to ``error`` for display.
        """
        previous = self.cookie_status
        verdict = self.lifecycle.gate()
        if not verdict.allowed:
            logger.info("store.request_blocked", reason=verdict.reason)
            self.error = verdict.message
            self._commit(persist=self.cookie_status != previous)
        return verdict

    def logout(self) -> None:
        self.lifecycle.clear()
        self.encrypted_cookies = None
        self.current_conversation_id = None
        self._commit()

    # Conversations

    @property
    def current_conversation(self) -> Conversation | None:
        return self.get_conversation(self.current_conversation_id)

    def get_conversation(self, conversation_id: str | None) -> Conversation | None:
        if conversation_id is None:
            return None
        return next((c for c in self.conversations if c.id == conversation_id), None)

    def create_conversation(self) -> str:
        now = self._clock()
        conversation = Conversation(id=_new_id("conv"), title=DEFAULT_TITLE, created_at=now, updated_at=now)
        self.conversations.insert(0, conversation)
        self.current_conversation_id = conversation.id
        self.error = None
        self._commit()
        return conversation.id

    def set_current_conversation(self, conversation_id: str | None) -> None:
        self.current_conversation_id = conversation_id
        self.error = None
        self._commit()

    def add_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        is_streaming: bool = False,
        origin: str | None = None,
    ) -> Message | None:
        """Append a message. The first user message titles a new conversation."""
        conversation = self.get_conversation(conversation_id)
        if conversation is None:
            logger.warning("store.unknown_conversation", conversation_id=conversation_id)
            return None

        message = Message(
            id=_new_id("msg"),
            role=role,
            content=content,
            timestamp=self._clock(),
            is_streaming=is_streaming,
            origin=origin,
        )
        conversation.messages.append(message)
        if conversation.title == DEFAULT_TITLE and role == "user":
            conversation.title = content[:TITLE_LENGTH] + ("..." if len(content) > TITLE_LENGTH else "")
        conversation.updated_at = self._clock()
        self._commit()
        return message

    def update_message(self, conversation_id: str, message_id: str, **updates: Any) -> None:
        conversation = self.get_conversation(conversation_id)
        if conversation is None:
            return
        for index, message in enumerate(conversation.messages):
            if message.id == message_id:
                conversation.messages[index] = message.model_copy(update=updates)
                conversation.updated_at = self._clock()
                self._commit()
                return

    def delete_conversation(self, conversation_id: str) -> None:
        self.conversations = [c for c in self.conversations if c.id != conversation_id]
        if self.current_conversation_id == conversation_id:
            self.current_conversation_id = self.conversations[0].id if self.conversations else None
        self._commit()

    def update_conversation_title(self, conversation_id: str, title: str) -> None:
        conversation = self.get_conversation(conversation_id)
        if conversation is None:
            return
        conversation.title = title
        conversation.updated_at = self._clock()
        self._commit()

    # UI flags (not persisted)

    def set_loading(self, loading: bool) -> None:
        self.is_loading = loading
        self._commit(persist=False)

    def set_error(self, error: str | None) -> None:
        self.error = error
        self._commit(persist=False)

    def clear_error(self) -> None:
        self.set_error(None)

    def set_theme(self, theme: str) -> None:
        self.theme = theme
        self._commit()

    # Reminders

    def add_reminder(
        self,
        type: str,
        value: int,
        message: str,
        context: str = "",
        is_active: bool = True,
    ) -> Reminder:
        reminder = Reminder(
            id=_new_id("reminder"),
            type=type,
            value=value,
            message=message,
            context=context,
            is_active=is_active,
            created_at=self._clock(),
        )
        self.reminders.append(reminder)
        self._commit()
        return reminder

    def update_reminder(self, reminder_id: str, **updates: Any) -> None:
        self.reminders = [
            r.model_copy(update=updates) if r.id == reminder_id else r
            for r in self.reminders
        ]
        self._commit()

    def delete_reminder(self, reminder_id: str) -> None:
        self.reminders = [r for r in self.reminders if r.id != reminder_id]
        self._commit()

    # Persistence

    def snapshot(self) -> PersistedState:
        return PersistedState(
            encrypted_cookies=self.encrypted_cookies,
            cookies_set_at=self.cookies_set_at,
            last_validated_at=self.last_validated_at,
            cookie_status=self.cookie_status,
            current_conversation_id=self.current_conversation_id,
            conversations=self.conversations,
            reminders=self.reminders,
            theme=self.theme,
        )

    def save(self) -> None:
        if not self.persist or not storage.is_initialized():
            return
        storage.save_state(self.storage_key, self.snapshot().model_dump(mode="json", by_alias=True))

    def rehydrate(self) -> None:
        """Load the persisted document, decrypt, then re-check staleness."""
        if not self.persist or not storage.is_initialized():
            return

        data = storage.load_state(self.storage_key)
        if data is None:
            return

        try:
            state = PersistedState.model_validate(data)
        except ValidationError as e:
            logger.error("store.rehydrate_failed", error=str(e))
            return

        self.encrypted_cookies = state.encrypted_cookies
        self.current_conversation_id = state.current_conversation_id
        self.conversations = state.conversations
        self.reminders = state.reminders
        self.theme = state.theme

        if state.encrypted_cookies:
            decrypted = self.vault.decrypt(state.encrypted_cookies)
            if decrypted:
                self.lifecycle.restore(
                    decrypted,
                    state.cookies_set_at,
                    state.last_validated_at,
                    state.cookie_status or CredentialStatus.UNKNOWN,
                )
            else:
                self._discard_undecryptable()
        else:
            self.lifecycle.restore(None, state.cookies_set_at, state.last_validated_at, state.cookie_status)

        self.lifecycle.check_staleness()
        logger.info(
            "store.rehydrated",
            status=self.cookie_status.value if self.cookie_status else None,
            conversations=len(self.conversations),
            reminders=len(self.reminders),
        )
        self._commit()
