"""
Project Activity Feed - FastAPI Application

Main entry point for the API server.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from project_feed.api import api_router
from project_feed.api.routes.health import log_error, log_request
from project_feed.config import get_settings
from project_feed.models.common import ErrorResponse
from project_feed.services.auth import AuthError
from project_feed.services.errors import (
    AttachmentRejected,
    ContentPolicyViolation,
    ControllerDisposed,
    InvalidMessage,
    TransportError,
)
from project_feed.services.taxonomy import STATUS_TABLE

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)


class RequestIdFilter(logging.Filter):
    """Filter that adds request_id to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = "-"
        return True


# Apply filter to root logger
for handler in logging.root.handlers:
    handler.addFilter(RequestIdFilter())

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log startup and shutdown."""
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Status taxonomy loaded: {len(STATUS_TABLE)} statuses")

    yield

    logger.info("Shutting down...")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds request ID and logs all requests.

    Features:
    - Generates unique request ID for each request
    - Logs request start/end with timing
    - Records requests to diagnostics buffer
    - Adds X-Request-ID header to responses
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id

        method = request.method
        path = request.url.path
        client_ip = request.client.host if request.client else "unknown"
        start_time = time.time()

        logger.info(
            f"➡️  {method} {path} from {client_ip}",
            extra={"request_id": request_id}
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.exception(
                f"💥 {method} {path} FAILED ({duration_ms:.1f}ms): {e}",
                extra={"request_id": request_id}
            )
            log_error({
                "request_id": request_id,
                "method": method,
                "path": path,
                "error": str(e),
                "error_type": type(e).__name__,
            })
            raise

        duration_ms = (time.time() - start_time) * 1000
        status_emoji = "✅" if response.status_code < 400 else "❌"
        logger.info(
            f"{status_emoji} {method} {path} -> {response.status_code} ({duration_ms:.1f}ms)",
            extra={"request_id": request_id}
        )
        log_request({
            "request_id": request_id,
            "method": method,
            "path": path,
            "status_code": response.status_code,
            "duration_ms": round(duration_ms, 2),
            "client_ip": client_ip,
        })

        response.headers["X-Request-ID"] = request_id
        return response


def _error_response(
    request: Request,
    status_code: int,
    error: ErrorResponse,
) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "unknown")
    return JSONResponse(
        status_code=status_code,
        content=error.model_dump(mode="json"),
        headers={"X-Request-ID": request_id},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map feed errors onto ErrorResponse bodies."""
    settings = get_settings()

    @app.exception_handler(ContentPolicyViolation)
    async def content_policy_handler(request: Request, exc: ContentPolicyViolation):
        return _error_response(request, 422, ErrorResponse(
            error=exc.user_message,
            code=exc.code,
            reason=exc.reason,
        ))

    @app.exception_handler(AttachmentRejected)
    async def attachment_handler(request: Request, exc: AttachmentRejected):
        return _error_response(request, 422, ErrorResponse(
            error=exc.user_message,
            code=exc.code,
        ))

    @app.exception_handler(TransportError)
    async def transport_handler(request: Request, exc: TransportError):
        log_error({
            "request_id": getattr(request.state, "request_id", "unknown"),
            "path": request.url.path,
            "method": request.method,
            "error": exc.message,
            "error_type": type(exc).__name__,
        })
        status_code = 404 if exc.status_code == 404 else 502
        return _error_response(request, status_code, ErrorResponse(
            error=exc.user_message,
            detail=None if settings.is_production else exc.message,
            code=exc.code,
        ))

    @app.exception_handler(ControllerDisposed)
    async def disposed_handler(request: Request, exc: ControllerDisposed):
        return _error_response(request, 409, ErrorResponse(
            error=exc.user_message,
            code=exc.code,
        ))

    @app.exception_handler(AuthError)
    async def auth_handler(request: Request, exc: AuthError):
        return _error_response(request, 401, ErrorResponse(
            error=exc.message,
            code=exc.code,
        ))

    @app.exception_handler(InvalidMessage)
    async def invalid_message_handler(request: Request, exc: InvalidMessage):
        return _error_response(request, 400, ErrorResponse(
            error=exc.user_message,
            code=exc.code,
        ))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions."""
        request_id = getattr(request.state, "request_id", "unknown")
        logger.exception(
            f"Unhandled exception: {exc}",
            extra={"request_id": request_id}
        )
        log_error({
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
            "error": str(exc),
            "error_type": type(exc).__name__,
        })

        # Don't expose internal errors in production
        return _error_response(request, 500, ErrorResponse(
            error="Internal server error",
            detail=None if settings.is_production else str(exc),
            code="internal_error",
        ))


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Unified project activity feed: chat, status timeline and progress",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
        lifespan=lifespan,
    )

    # Add request logging middleware (must be added before CORS)
    app.add_middleware(RequestLoggingMiddleware)

    if settings.is_development:
        app.add_middleware(
            CORSMiddleware,
            allow_origin_regex=r".*",
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    else:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(api_router, prefix="/api")

    @app.get("/", tags=["root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs" if settings.is_development else None,
            "health": "/api/health",
        }

    register_exception_handlers(app)
    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "project_feed.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
    )
