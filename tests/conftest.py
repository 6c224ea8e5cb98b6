"""Shared fixtures for all tests."""

import json

import httpx
import pytest

from frontend import storage


@pytest.fixture
def valid_cookies() -> str:
    return "SAPISID=sapisid-value; __Secure-1PSID=psid-value; __Secure-1PSIDTS=psidts-value"


@pytest.fixture
def messy_cookies() -> str:
    """Cookie paste as copied out of a browser devtools table."""
    return (
        "  ;;SAPISID=sapisid-value;;\n"
        "   __Secure-1PSID=psid-value  \n"
        "__Secure-1PSIDTS=psidts-value;;;  "
    )


@pytest.fixture
def partial_cookies() -> str:
    return "SAPISID=sapisid-value; __Secure-1PSID=psid-value"


@pytest.fixture
def text_reply() -> dict:
    return {"candidates": [{"content": {"parts": [{"text": "Hello from Gemini"}]}}]}


@pytest.fixture
def audio_reply() -> dict:
    return {
        "candidates": [{
            "content": {"parts": [{"inlineData": {"mimeType": "audio/mp3", "data": "QUJD"}}]},
        }],
    }


class RecordingUpstream:
    """Programmable stand-in for the upstream endpoint.

    Queue responses with ``reply``; every request that reaches the
    transport is kept in ``requests``.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._responses: list[httpx.Response | Exception] = []

    def reply(self, status_code: int = 200, json_body=None, text: str | None = None) -> None:
        if json_body is not None:
            self._responses.append(httpx.Response(status_code, json=json_body))
        else:
            self._responses.append(httpx.Response(status_code, text=text or ""))

    def fail(self, error: Exception) -> None:
        self._responses.append(error)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self._responses.pop(0) if self._responses else httpx.Response(200, json={})
        if isinstance(response, Exception):
            raise response
        return response

    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def upstream() -> RecordingUpstream:
    return RecordingUpstream()


@pytest.fixture
def upstream_client(upstream) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler))


@pytest.fixture
def memory_storage():
    """Fresh in-memory state database."""
    storage.init_storage("sqlite:///:memory:")
    yield
    storage._engine = None
    storage._SessionLocal = None
