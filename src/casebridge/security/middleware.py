"""
Security middleware for CaseBridge.

Implements request sanitization: null bytes and path traversal sequences
are rejected before routing.
"""

import logging
from typing import Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class RequestSanitizerMiddleware(BaseHTTPMiddleware):
    """
    Request sanitization middleware.

    - Rejects null bytes in paths and query strings
    - Rejects path traversal attempts, including encoded forms
    """

    # Patterns that indicate path traversal attempts
    DANGEROUS_PATTERNS = [
        "..",
        "%2e%2e",
        "%252e%252e",
        "..%c0%af",
        "..%c1%9c",
    ]

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        query = request.url.query or ""

        if "\x00" in path or "\x00" in query or "%00" in query:
            logger.warning(f"Null byte injection attempt blocked: {_client_host(request)}")
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"error": "invalid_request", "message": "Invalid request"},
            )

        path_lower = path.lower()
        for pattern in self.DANGEROUS_PATTERNS:
            if pattern in path_lower:
                logger.warning(
                    f"Path traversal attempt blocked: {path} from {_client_host(request)}"
                )
                return JSONResponse(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    content={"error": "invalid_request", "message": "Invalid request path"},
                )

        return await call_next(request)
