"""Upstream request bodies: conversation turns, chat payload, speech payload.

The local vocabulary is user/assistant/system; upstream only knows
user/model, and system notes never leave the client.
"""

from collections.abc import Iterable
from typing import Any

from backend.api.schemas import MessageRecord

_UPSTREAM_ROLES = {"user": "user", "assistant": "model"}

TTS_PROMPT = (
    "Convert the following text into a natural sounding spoken response. "
    "Respond only with audio data."
)
TTS_VOICE_CONFIG = {"gender": "FEMALE", "voice": "en-US-Neural2-H"}
TTS_TEMPERATURE = 0.6


def build_contents(history: Iterable[MessageRecord], message: str) -> list[dict[str, Any]]:
    """Frame local history plus the new message as upstream turns.

    Args:
        history: Prior messages, oldest first. System messages are dropped.
        message: The new user text, always appended as the final turn.

    Returns:
        List of ``{"role": "user"|"model", "parts": [{"text": ...}]}`` turns.
    """
    contents = [
        {"role": _UPSTREAM_ROLES[msg.role], "parts": [{"text": msg.content}]}
        for msg in history
        if msg.role in _UPSTREAM_ROLES
    ]
    contents.append({"role": "user", "parts": [{"text": message}]})
    return contents


def build_chat_payload(
    history: Iterable[MessageRecord],
    message: str,
    generation_config: dict[str, Any],
) -> dict[str, Any]:
    """Full generateContent body for a chat turn."""
    return {
        "contents": build_contents(history, message),
        "generationConfig": dict(generation_config),
    }


def build_tts_payload(text: str) -> dict[str, Any]:
    """Body asking the service for audio-only output with the fixed voice."""
    return {
        "contents": [
            {"role": "user", "parts": [{"text": f"{TTS_PROMPT}\n\n{text}"}]},
        ],
        "responseModalities": ["AUDIO"],
        "generationConfig": {
            "temperature": TTS_TEMPERATURE,
            "audioConfig": {"voiceConfig": dict(TTS_VOICE_CONFIG)},
        },
    }
