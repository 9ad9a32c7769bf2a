"""
Request rate limiting with slowapi.

One limiter per process, keyed on the client address. Health, metrics and
webhook handlers opt out with ``@limiter.exempt``.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from storefront.src.config import get_settings


def build_limiter() -> Limiter:
    settings = get_settings()
    return Limiter(
        key_func=get_remote_address,
        default_limits=[settings.rate_limit_string],
        storage_uri=settings.rate_limit_storage_url or "memory://",
        enabled=settings.rate_limit_enabled,
        headers_enabled=False
    )


limiter = build_limiter()
