"""Security response headers."""

from typing import Callable, Dict, List

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from storefront.src.config import Settings

STATIC_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-Download-Options": "noopen",
}

STRIPPED_HEADERS = ("X-Powered-By", "Server")


def build_csp(directives: Dict[str, List[str]]) -> str:
    """Render ``{"img-src": ["'self'", "data:"]}`` as a CSP header value."""
    return "; ".join(
        f"{name} {' '.join(sources)}".strip()
        for name, sources in directives.items()
    )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to responses."""

    def __init__(self, app, settings: Settings):
        super().__init__(app)
        self.headers = dict(STATIC_HEADERS)
        if settings.security_require_https:
            hsts = f"max-age={settings.security_hsts_max_age}; includeSubDomains"
            if settings.security_hsts_preload:
                hsts += "; preload"
            self.headers["Strict-Transport-Security"] = hsts
        if settings.security_csp_enabled:
            self.headers["Content-Security-Policy"] = build_csp(settings.security_csp_directives)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers[name] = value
        for name in STRIPPED_HEADERS:
            if name in response.headers:
                del response.headers[name]
        return response
