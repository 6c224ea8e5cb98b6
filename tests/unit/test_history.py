"""Unit tests for client-side history framing."""

from frontend.history import build_history_payload
from frontend.models import Message


def _msg(i, role, content, streaming=False):
    return Message(id=f"m{i}", role=role, content=content, is_streaming=streaming)


def test_trailing_user_removed():
    messages = [_msg(1, "user", "hi"), _msg(2, "assistant", "hello"), _msg(3, "user", "again")]
    assert [m.id for m in build_history_payload(messages)] == ["m1", "m2"]


def test_completed_conversation_unchanged():
    messages = [_msg(1, "user", "hi"), _msg(2, "assistant", "hello")]
    assert build_history_payload(messages) == messages


def test_streaming_placeholder_excluded():
    messages = [
        _msg(1, "user", "hi"),
        _msg(2, "assistant", "hello"),
        _msg(3, "user", "again"),
        _msg(4, "assistant", "", streaming=True),
    ]
    assert [m.id for m in build_history_payload(messages)] == ["m1", "m2"]


def test_abandoned_placeholder_mid_conversation():
    messages = [
        _msg(1, "user", "first"),
        _msg(2, "assistant", "", streaming=True),
        _msg(3, "user", "second"),
        _msg(4, "assistant", "reply"),
    ]
    assert [m.id for m in build_history_payload(messages)] == ["m1", "m3", "m4"]


def test_empty():
    assert build_history_payload([]) == []
