"""HTTP middleware and exception handlers."""

from storefront.src.middleware.api_cache import ApiCacheMiddleware
from storefront.src.middleware.errors import register_exception_handlers
from storefront.src.middleware.request_logging import RequestLoggingMiddleware
from storefront.src.middleware.security_headers import SecurityHeadersMiddleware

__all__ = [
    "ApiCacheMiddleware",
    "RequestLoggingMiddleware",
    "SecurityHeadersMiddleware",
    "register_exception_handlers",
]
