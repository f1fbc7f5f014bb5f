"""Security headers middleware."""
from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add OWASP-recommended headers to all responses.

    Dashboards and admin views carry commission figures, so they are never cached.
    Click and conversion endpoints set or read the attribution cookie and are
    never cached either, otherwise a proxy could replay one visitor's cookie.
    """

    _NO_CACHE_PREFIXES = (
        "/api/v1/admin/",
        "/api/v1/affiliate/",
        "/api/v1/conversions",
    )

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Strict-Transport-Security"] = (
            "max-age=31536000; includeSubDomains"
        )

        path = request.url.path
        if any(path.startswith(p) for p in self._NO_CACHE_PREFIXES):
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
            response.headers["Pragma"] = "no-cache"

        return response
