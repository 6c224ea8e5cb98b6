"""Client-side data models.

Serialized with camelCase keys under a single storage namespace;
datetimes round-trip as ISO strings.
"""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from frontend.lifecycle import CredentialStatus


def _now() -> datetime:
    return datetime.now(timezone.utc)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Message(_CamelModel):
    """One chat message. ``is_streaming`` marks an unanswered placeholder."""
    id: str
    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: datetime = Field(default_factory=_now)
    is_streaming: bool = False
    origin: str | None = None


class Conversation(_CamelModel):
    id: str
    title: str = "New Chat"
    messages: list[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class Reminder(_CamelModel):
    """A reminder record.

    ``value`` is a duration in ms for interval/timeout reminders and an
    epoch timestamp in ms for scheduled ones.
    """
    id: str
    type: Literal["interval", "timeout", "scheduled"]
    value: int
    message: str
    context: str = ""
    is_active: bool = True
    created_at: datetime = Field(default_factory=_now)


class PersistedState(_CamelModel):
    """Everything written under the storage namespace key."""
    encrypted_cookies: str | None = None
    cookies_set_at: datetime | None = None
    last_validated_at: datetime | None = None
    cookie_status: CredentialStatus | None = None
    current_conversation_id: str | None = None
    conversations: list[Conversation] = Field(default_factory=list)
    reminders: list[Reminder] = Field(default_factory=list)
    theme: Literal["dark", "light"] = "dark"
