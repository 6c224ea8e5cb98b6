"""Pydantic models for the API layer.

Defines request/response schemas for all endpoints. Wire names are
camelCase to match the browser client; attributes stay snake_case.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class MessageRecord(BaseModel):
    """Single message in a conversation history."""
    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: datetime | None = None
    is_streaming: bool = Field(False, alias="isStreaming")
    origin: str | None = None


class ChatRequest(BaseModel):
    """Incoming chat message from the frontend."""
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1, max_length=8000, description="New user turn")
    conversation_history: list[MessageRecord] = Field(
        default_factory=list,
        alias="conversationHistory",
        description="Prior turns, oldest first",
    )
    cookies: str = Field("", description="Raw or canonical Gemini cookie string")


class ChatResponse(BaseModel):
    """Outgoing chat reply."""
    response: str
    success: bool = True


class TTSRequest(BaseModel):
    """Text to synthesize."""
    text: str = Field(..., min_length=1, max_length=5000)
    cookies: str = ""


class TTSResponse(BaseModel):
    """Speech result. ``audio_unavailable`` marks the no-audio outcome."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    audio_url: str | None = Field(None, alias="audioUrl")
    audio_unavailable: bool = Field(False, alias="audioUnavailable")
    error: str | None = None


class ValidateRequest(BaseModel):
    """Cookies to probe against upstream."""
    cookies: str = ""


class ValidateResponse(BaseModel):
    """Outcome of a credential probe."""
    valid: bool
    message: str | None = None


class ErrorResponse(BaseModel):
    """Body returned with every 4xx/5xx from the local service."""
    error: str
    success: bool = False
