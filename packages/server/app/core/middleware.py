"""
HTTP middleware for the Hearth API.

``SecurityHeadersMiddleware`` stamps a locked-down header set on every
response; the API serves JSON and SSE only, so the content policy allows
nothing to load.

``CSRFMiddleware`` guards browser sessions. Login sets two cookies: the
httponly session cookie and a readable CSRF cookie that the frontend echoes
back in ``X-CSRF-Token`` on every write. Bearer-token callers and the
Stripe webhook carry no ambient credentials and are let through.
"""

from __future__ import annotations

import secrets

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.core.config import get_settings

settings = get_settings()

READ_ONLY_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
CSRF_HEADER = "X-CSRF-Token"

# Authenticated by the stripe-signature header instead of a session.
CSRF_EXEMPT_PATHS = frozenset({"/api/v1/billing/stripe-webhooks"})

API_RESPONSE_HEADERS = {
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none';",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "0",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains; preload",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers.update(API_RESPONSE_HEADERS)
        return response


def needs_csrf_check(request: Request) -> bool:
    """Only state-changing requests riding on the session cookie are checked."""
    if request.method in READ_ONLY_METHODS:
        return False
    if request.url.path in CSRF_EXEMPT_PATHS:
        return False
    if request.headers.get("Authorization"):
        return False
    return settings.session_cookie_name in request.cookies


class CSRFMiddleware(BaseHTTPMiddleware):
    """Double-submit check: the CSRF cookie must equal the ``X-CSRF-Token`` header."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if needs_csrf_check(request):
            expected = request.cookies.get(settings.csrf_cookie_name) or ""
            presented = request.headers.get(CSRF_HEADER) or ""
            if not expected or not secrets.compare_digest(expected.encode(), presented.encode()):
                return JSONResponse(
                    status_code=403,
                    content={"error": "Invalid or missing CSRF token."},
                )
        return await call_next(request)
