"""FastAPI application entry point.

Startup sequence: load .env -> build the upstream gateway (shared httpx client).
Shutdown closes the gateway's client.
"""

import os
from contextlib import asynccontextmanager

import structlog
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from backend.api.routes import router
from backend.api.schemas import ErrorResponse
from backend.core.gateway import GeminiGateway

load_dotenv()

logger = structlog.get_logger(__name__)


def create_app(gateway: GeminiGateway | None = None) -> FastAPI:
    """Build the app. Tests pass a gateway wired to a mock transport."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events."""
        logger.info("startup.begin")

        app.state.gateway = gateway or GeminiGateway()
        logger.info("startup.gateway_initialized",
                    endpoint=app.state.gateway.chat_endpoint.split("?")[0])

        logger.info("startup.complete")
        yield
        await app.state.gateway.aclose()
        logger.info("shutdown.complete")

    app = FastAPI(
        title="Gemini Cookie Chat API",
        description="Cookie-authenticated proxy to the Gemini web endpoints",
        version="0.1.0",
        lifespan=lifespan,
    )

    origins = [o.strip() for o in os.environ.get("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Malformed input is a 400, not FastAPI's default 422."""
        errors = exc.errors()
        fields = [".".join(str(p) for p in err.get("loc", ()) if p != "body") for err in errors]
        logger.warning("request.invalid", path=request.url.path, fields=fields)
        message = f"Invalid request: {', '.join(f for f in fields if f) or 'body'}"
        return JSONResponse(status_code=400, content=ErrorResponse(error=message).model_dump())

    app.include_router(router)
    return app


app = create_app()
