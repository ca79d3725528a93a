"""
CaseBridge - legal matter management for firms and their clients

FastAPI application entry point with security hardening.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from casebridge import __version__
from casebridge.config import settings
from casebridge.db.orm import utcnow
from casebridge.db.session import create_engine, create_session_factory
from casebridge.errors import CaseBridgeError, Unauthorized
from casebridge.security.middleware import RequestSanitizerMiddleware

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# Rate limiter
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_requests}/{settings.rate_limit_window_seconds}seconds"],
    enabled=settings.rate_limit_enabled,
)


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Limit request body size to prevent DoS attacks."""

    # Default: 1MB max request body. Documents are uploaded to storage
    # directly; the API only receives their metadata.
    MAX_BODY_SIZE = 1 * 1024 * 1024

    # Per-endpoint limits (path prefix -> max bytes)
    ENDPOINT_LIMITS = {
        "/api/v1/auth": 4 * 1024,
    }

    async def dispatch(self, request: Request, call_next) -> Response:
        max_size = self.MAX_BODY_SIZE
        for prefix, limit in self.ENDPOINT_LIMITS.items():
            if request.url.path.startswith(prefix):
                max_size = limit
                break

        content_length = request.headers.get("content-length")
        if content_length:
            try:
                if int(content_length) > max_size:
                    return JSONResponse(
                        status_code=413,
                        content={
                            "error": "request_too_large",
                            "message": f"Request body exceeds maximum size of {max_size // 1024}KB",
                            "max_size_bytes": max_size,
                        },
                    )
            except ValueError:
                pass

        return await call_next(request)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "frame-ancestors 'none'; "
            "form-action 'self';"
        )
        response.headers["Permissions-Policy"] = (
            "accelerometer=(), camera=(), geolocation=(), gyroscope=(), "
            "magnetometer=(), microphone=(), payment=(), usb=()"
        )

        # HSTS (only in production with HTTPS)
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains; preload"
            )

        if "server" in response.headers:
            del response.headers["server"]

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log requests for security auditing."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start_time = time.time()
        request_id = request.headers.get("X-Request-ID", f"req_{int(time.time() * 1000)}")

        logger.info(
            f"Request: {request.method} {request.url.path} "
            f"[{request_id}] from {request.client.host if request.client else 'unknown'}"
        )

        response = await call_next(request)

        process_time = time.time() - start_time
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(process_time)

        logger.info(
            f"Response: {request.method} {request.url.path} "
            f"[{request_id}] status={response.status_code} time={process_time:.3f}s"
        )

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    logger.info("Starting CaseBridge...")

    engine = create_engine()
    app.state.db_engine = engine
    app.state.db_session = create_session_factory(engine)

    logger.info("CaseBridge started successfully")

    yield

    logger.info("Shutting down CaseBridge...")
    await engine.dispose()
    logger.info("CaseBridge shutdown complete")


app = FastAPI(
    title="CaseBridge",
    description="Legal matter management for firms and their clients",
    version=__version__,
    lifespan=lifespan,
    # Disable docs in production
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
    openapi_url="/openapi.json" if not settings.is_production else None,
)

# Rate limiting
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

# Request size limit middleware
app.add_middleware(RequestSizeLimitMiddleware)

# Security headers middleware (must be added before CORS)
app.add_middleware(SecurityHeadersMiddleware)

# Request logging middleware
app.add_middleware(RequestLoggingMiddleware)

# Request sanitization (blocks path traversal, null bytes)
app.add_middleware(RequestSanitizerMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Authorization",
        "Content-Type",
        "X-Request-ID",
    ],
    expose_headers=["X-Request-ID", "X-Process-Time"],
    max_age=600,  # Cache preflight for 10 minutes
)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Handle rate limit exceeded errors."""
    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limited",
            "message": "Too many requests. Please try again later.",
            "retry_after": exc.detail,
        },
        headers={"Retry-After": str(exc.detail)},
    )


@app.exception_handler(CaseBridgeError)
async def domain_error_handler(request: Request, exc: CaseBridgeError) -> JSONResponse:
    """Render domain errors as {"error": kind, "message": ...}."""
    headers = {}
    if isinstance(exc, Unauthorized):
        headers["WWW-Authenticate"] = "Bearer"
    if getattr(exc, "terminate_session", False):
        # Tell the browser to drop any credentials it holds for us
        headers["Clear-Site-Data"] = '"cookies", "storage"'
        logger.warning(f"Session terminated: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.get("/health")
async def health_check(request: Request) -> dict[str, Any]:
    """
    Health check endpoint.

    Returns the status of the database.
    """
    health_status: dict[str, Any] = {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "version": __version__,
        "services": {},
    }

    try:
        async with request.app.state.db_session() as session:
            await session.execute(text("SELECT 1"))
        health_status["services"]["database"] = {"status": "healthy"}
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        health_status["services"]["database"] = {"status": "unhealthy", "error": str(e)}
        health_status["status"] = "degraded"

    return health_status


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "name": "CaseBridge",
        "description": "Legal matter management for firms and their clients",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions securely."""
    logger.exception(f"Unhandled exception: {exc}")

    # Never expose internal error details in production
    if settings.is_production:
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_error",
                "message": "An unexpected error occurred. Please contact support.",
            },
        )

    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "message": str(exc),
            "type": type(exc).__name__,
        },
    )


# Import and include routers
from casebridge.api.routes import (  # noqa: E402
    accounts_router,
    audit_router,
    auth_router,
    firms_router,
    invitations_router,
    matters_router,
    notifications_router,
)

app.include_router(auth_router, prefix="/api/v1")
app.include_router(accounts_router, prefix="/api/v1")
app.include_router(firms_router, prefix="/api/v1")
app.include_router(matters_router, prefix="/api/v1")
app.include_router(invitations_router, prefix="/api/v1")
app.include_router(notifications_router, prefix="/api/v1")
app.include_router(audit_router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("casebridge.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
