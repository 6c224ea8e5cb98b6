"""FastAPI endpoints for the Gemini cookie chat service.

POST /api/chat - relay a user message (with history) upstream
POST /api/tts - synthesize speech for a piece of text
POST /api/auth/validate - probe whether pasted cookies round-trip
GET /health - component health check
"""

import time

import structlog
from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

from backend.api.schemas import (
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    TTSRequest,
    TTSResponse,
    ValidateRequest,
    ValidateResponse,
)
from backend.core.errors import CredentialError, RateLimitError, UpstreamError

logger = structlog.get_logger(__name__)

router = APIRouter()

NO_AUDIO_MESSAGE = "Gemini did not return audio data. Please try again later."


def _error(status_code: int, message: str) -> JSONResponse:
    body = ErrorResponse(error=message)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def _map_gateway_error(event: str, e: Exception, fallback: str) -> JSONResponse:
    """Translate a gateway failure into the local status taxonomy."""
    if isinstance(e, CredentialError):
        logger.warning(f"{event}.credential_rejected", error=str(e))
        return _error(401, str(e))
    if isinstance(e, RateLimitError):
        logger.warning(f"{event}.rate_limited")
        return _error(429, "Too many requests. Please try again later.")
    if isinstance(e, UpstreamError):
        logger.error(f"{event}.upstream_failed", status=e.status_code)
        detail = f"{e} {e.excerpt()}".strip()
        return _error(500, detail)

    logger.error(f"{event}.failed", error=str(e))
    return _error(500, fallback)


@router.post("/api/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, req: Request):
    """Frame history + message, relay upstream, return the reply text."""
    start = time.monotonic()
    gateway = req.app.state.gateway

    logger.info("chat.request", msg_len=len(request.message),
                history=len(request.conversation_history), cookie_len=len(request.cookies))

    try:
        result = await gateway.chat(request.cookies, request.message, request.conversation_history)
    except Exception as e:
        return _map_gateway_error("chat", e, "An unexpected error occurred. Please try again.")

    latency_ms = int((time.monotonic() - start) * 1000)
    logger.info("chat.response", latency_ms=latency_ms, text_len=len(result.text))
    return ChatResponse(response=result.text, success=True)


@router.post("/api/tts", response_model=TTSResponse)
async def tts(request: TTSRequest, req: Request):
    """Synthesize speech. Missing audio is a 200 with ``audioUnavailable``."""
    gateway = req.app.state.gateway
    logger.info("tts.request", text_len=len(request.text))

    try:
        speech = await gateway.synthesize_speech(request.cookies, request.text)
    except Exception as e:
        return _map_gateway_error("tts", e, "Failed to generate audio. Please try again.")

    if not speech.available:
        logger.info("tts.unavailable")
        return TTSResponse(success=False, audio_unavailable=True, error=NO_AUDIO_MESSAGE)

    audio_url = f"data:{speech.mime_type};base64,{speech.audio_base64}"
    logger.info("tts.response", mime_type=speech.mime_type, audio_len=len(speech.audio_base64))
    return TTSResponse(success=True, audio_url=audio_url)


@router.post("/api/auth/validate", response_model=ValidateResponse)
async def validate(request: ValidateRequest, req: Request):
    """Round-trip the cookies once. Always 200; the body carries the verdict."""
    gateway = req.app.state.gateway
    logger.info("validate.request", cookie_len=len(request.cookies))

    outcome = await gateway.validate(request.cookies)

    logger.info("validate.response", valid=outcome.valid)
    return ValidateResponse(valid=outcome.valid, message=outcome.message)


@router.get("/health")
def health(req: Request):
    """Check health of backend components."""
    components = {}

    gateway = getattr(req.app.state, "gateway", None)
    components["gateway"] = "ok" if gateway is not None and gateway.is_healthy() else "error"
    components["upstream_endpoint"] = "ok" if gateway is not None and gateway.chat_endpoint else "error"

    errors = [k for k, v in components.items() if v == "error"]
    if not errors:
        status = "healthy"
    elif len(errors) == len(components):
        status = "unhealthy"
    else:
        status = "degraded"

    return {"status": status, "components": components}


@router.get("/")
@router.head("/")
def root_health():
    """Basic root health check for deployment platforms."""
    return {"status": "ok", "service": "gemini-cookie-chat"}
