"""
FastAPI Application
==================

Example service built on the SSE session: a ping/pong event stream, a ping
broadcast endpoint and a health check.
"""

from contextlib import asynccontextmanager
import uuid
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send
import uvicorn

from pushstream.config.settings import get_settings
from pushstream.config.logging import get_logger
from pushstream.api.sse import SSEEndpoint, SSEProtocolError
from pushstream.api.routes.health import router as health_router
from pushstream.api.routes.pong import PingResponse, PongHandler, ping, pongers
from pushstream.models.schemas import ErrorResponse, ServiceInfo

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger.info("Starting FastAPI application", sse_enabled=settings.sse_enabled)
    try:
        yield
    finally:
        logger.info("Shutting down FastAPI application", open_streams=len(pongers))


class RequestIDMiddleware:
    """Attach an X-Request-ID header to every HTTP response."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = str(uuid.uuid4())
        scope.setdefault("state", {})["request_id"] = request_id

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message)["X-Request-ID"] = request_id
            await send(message)

        await self.app(scope, receive, send_with_request_id)


# Create FastAPI app
settings = get_settings()
app = FastAPI(
    title=settings.app_name,
    description="Server-Sent Events sessions driven by pluggable handlers",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Add middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_hosts,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)
app.add_middleware(RequestIDMiddleware)

app.include_router(health_router)

# Include SSE routes if enabled
if settings.sse_enabled:
    # All methods are routed to the endpoint; the session answers 405 itself
    app.add_route(settings.sse_path, SSEEndpoint(PongHandler), include_in_schema=False)
    app.add_api_route(
        settings.sse_ping_path,
        ping,
        methods=["POST"],
        response_model=PingResponse,
        tags=["SSE"],
    )


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


# Exception handlers
@app.exception_handler(HTTPException)
async def custom_http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom HTTP exception handler with structured error response."""
    error_response = ErrorResponse(
        error=str(exc.detail),
        error_code=str(exc.status_code),
        details=None,
        request_id=_request_id(request),
    )

    logger.error(
        "HTTP exception",
        status_code=exc.status_code,
        detail=exc.detail,
        request_id=error_response.request_id,
    )

    return JSONResponse(status_code=exc.status_code, content=error_response.model_dump(mode="json"))


@app.exception_handler(SSEProtocolError)
async def sse_protocol_exception_handler(request: Request, exc: SSEProtocolError) -> JSONResponse:
    """Handle SSE session errors raised before a stream started."""
    error_response = ErrorResponse(
        error="Event stream failed",
        error_code=type(exc).__name__,
        details={"message": str(exc)} if settings.debug else None,
        request_id=_request_id(request),
    )

    logger.error(
        "SSE protocol error",
        error_code=error_response.error_code,
        error_message=str(exc),
        request_id=error_response.request_id,
    )

    return JSONResponse(status_code=500, content=error_response.model_dump(mode="json"))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """General exception handler for unexpected errors."""
    error_response = ErrorResponse(
        error="Internal server error",
        error_code="INTERNAL_ERROR",
        details={"exception": str(exc)} if settings.debug else None,
        request_id=_request_id(request),
    )

    logger.error(
        "Unhandled exception",
        exception=str(exc),
        request_id=error_response.request_id,
        exc_info=True,
    )

    return JSONResponse(status_code=500, content=error_response.model_dump(mode="json"))


# Root endpoint
@app.get("/", tags=["General"], response_model=ServiceInfo)
async def root() -> ServiceInfo:
    """
    Root endpoint with basic API information.
    """
    endpoints = {"health": "GET /health"}
    if settings.sse_enabled:
        endpoints["event_stream"] = f"GET {settings.sse_path}"
        endpoints["ping"] = f"POST {settings.sse_ping_path}"
    return ServiceInfo(
        name=settings.app_name,
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        endpoints=endpoints,
    )


# Development server runner
def run_development_server() -> None:
    """Run development server with auto-reload."""
    uvicorn.run(
        "pushstream.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )


def create_app() -> FastAPI:
    """
    Application factory function for creating FastAPI app instance.
    Used by integration tests and external deployment scripts.

    Returns:
        FastAPI application instance
    """
    return app


if __name__ == "__main__":
    run_development_server()
