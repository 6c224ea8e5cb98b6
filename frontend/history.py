"""History framing on the client before a send."""

from collections.abc import Sequence

from frontend.models import Message


def build_history_payload(messages: Sequence[Message]) -> list[Message]:
    """Messages to send as "history so far" alongside a new turn.

    Drops assistant placeholders still generating, then drops a trailing
    unanswered user message, since the caller is about to resubmit it as
    the new turn.
    """
    payload = [m for m in messages if not (m.role == "assistant" and m.is_streaming)]
    if payload and payload[-1].role == "user":
        payload = payload[:-1]
    return payload
