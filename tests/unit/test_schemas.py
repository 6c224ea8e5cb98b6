"""Unit tests for Pydantic API schemas."""

import pytest
from pydantic import ValidationError
from backend.api.schemas import ChatRequest, ChatResponse, MessageRecord, TTSRequest, TTSResponse


class TestChatRequest:

    def test_valid_request(self):
        req = ChatRequest(message="Hello", cookies="a=1")
        assert req.message == "Hello"
        assert req.conversation_history == []

    def test_camel_case_history(self):
        req = ChatRequest.model_validate({
            "message": "next",
            "conversationHistory": [{"role": "user", "content": "hi", "isStreaming": False}],
            "cookies": "",
        })
        assert req.conversation_history[0].role == "user"

    def test_empty_message_rejected(self):
        with pytest.raises(ValidationError):
            ChatRequest(message="")

    def test_message_max_length(self):
        with pytest.raises(ValidationError):
            ChatRequest(message="x" * 8001)

    def test_message_at_max_length(self):
        req = ChatRequest(message="x" * 8000)
        assert len(req.message) == 8000

    def test_cookies_default_empty(self):
        assert ChatRequest(message="hi").cookies == ""


class TestChatResponse:

    def test_serialization(self):
        data = ChatResponse(response="Hello").model_dump()
        assert data == {"response": "Hello", "success": True}


class TestTTS:

    def test_empty_text_rejected(self):
        with pytest.raises(ValidationError):
            TTSRequest(text="")

    def test_response_aliases(self):
        data = TTSResponse(success=False, audio_unavailable=True, error="none").model_dump(by_alias=True)
        assert data["audioUnavailable"] is True
        assert data["audioUrl"] is None


class TestMessageRecord:

    def test_valid_record(self):
        rec = MessageRecord(role="system", content="note")
        assert rec.role == "system"
        assert rec.is_streaming is False

    def test_invalid_role_rejected(self):
        with pytest.raises(ValidationError):
            MessageRecord(role="model", content="hello")
