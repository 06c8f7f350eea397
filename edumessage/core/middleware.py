"""Custom middleware for security headers and request logging."""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from edumessage.core.config import settings

logger = logging.getLogger("edumessage.requests")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=(), payment=()",
}

# Only sent in production, where the API sits behind HTTPS
HSTS_HEADER = "max-age=31536000; includeSubDomains"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        if settings.environment == "production":
            response.headers["Strict-Transport-Security"] = HSTS_HEADER
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and elapsed time for each request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        response.headers["X-Process-Time"] = f"{elapsed_ms:.1f}ms"
        user_id = getattr(request.state, "user_id", None)
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"| {elapsed_ms:.1f}ms | user={user_id or '-'}"
        )
        return response
