"""
Redis-backed cache for public GET responses.

Entries are JSON documents holding the status code, content type and body
of a successful response. The Redis client lives on ``app.state.redis``;
when it is absent every request passes straight through.
"""

import fnmatch
import hashlib
import json
from typing import Callable, Optional

import structlog
from fastapi import Request
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from shared.metrics import get_metrics
from storefront.src.config import Settings

logger = structlog.get_logger(__name__)

KEY_PREFIX = "api:"


def cache_key(method: str, path: str, query_params) -> str:
    """Stable key for a request; query parameter order does not matter."""
    query = json.dumps(sorted(query_params.items()), separators=(",", ":"))
    digest = hashlib.sha256(f"{method}:{path}:{query}".encode()).hexdigest()
    return f"{KEY_PREFIX}{digest}"


def _relative_path(path: str, settings: Settings) -> str:
    if settings.api_prefix and path.startswith(settings.api_prefix + "/"):
        return path[len(settings.api_prefix):]
    return path


def resource_ttl(path: str, settings: Settings) -> int:
    """TTL for the resource named by the first path segment after the API prefix."""
    resource = _relative_path(path, settings).strip("/").split("/", 1)[0]
    return settings.cache_resource_ttls.get(resource, settings.cache_ttl)


def is_excluded(path: str, settings: Settings) -> bool:
    """Match exclusion patterns against the full path and the prefix-relative path."""
    candidates = {path, _relative_path(path, settings)}
    return any(
        fnmatch.fnmatch(candidate, pattern)
        for pattern in settings.cache_exclude_paths
        for candidate in candidates
    )


def is_cacheable(request: Request, settings: Settings) -> bool:
    if request.method != "GET":
        return False
    if is_excluded(request.url.path, settings):
        return False
    if "authorization" in request.headers and not settings.cache_authenticated_requests:
        return False
    return True


class ApiCacheMiddleware(BaseHTTPMiddleware):
    """Serves cached GET responses and stores fresh successful ones."""

    def __init__(self, app, settings: Settings):
        super().__init__(app)
        self.settings = settings

    async def _lookup(self, redis, key: str) -> Optional[Response]:
        try:
            raw = await redis.get(key)
        except RedisError as e:
            logger.warning("cache_read_failed", key=key, error=str(e))
            return None
        if raw is None:
            return None

        try:
            entry = json.loads(raw)
            response = Response(
                content=entry["body"],
                status_code=entry["status"],
                media_type=entry.get("contentType")
            )
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("cache_entry_corrupt", key=key, error=str(e))
            return None

        response.headers["X-Cache"] = "HIT"
        response.headers["X-Cache-Key"] = key
        return response

    async def _store(self, redis, key: str, ttl: int, response: Response, body: bytes) -> None:
        entry = json.dumps({
            "status": response.status_code,
            "contentType": response.headers.get("content-type"),
            "body": body.decode("utf-8"),
        })
        try:
            await redis.setex(key, ttl, entry)
        except RedisError as e:
            logger.warning("cache_write_failed", key=key, error=str(e))

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        redis = getattr(request.app.state, "redis", None)
        if redis is None or not is_cacheable(request, self.settings):
            return await call_next(request)

        metrics = get_metrics()
        key = cache_key(request.method, request.url.path, request.query_params)

        cached = await self._lookup(redis, key)
        if cached is not None:
            metrics.cache_lookups.labels(result="hit").inc()
            logger.debug("cache_hit", path=request.url.path)
            return cached

        metrics.cache_lookups.labels(result="miss").inc()
        response = await call_next(request)

        body = b"".join([chunk async for chunk in response.body_iterator])
        fresh = Response(
            content=body,
            status_code=response.status_code,
            headers=dict(response.headers),
            media_type=response.media_type
        )
        if 200 <= response.status_code < 300 and body:
            ttl = resource_ttl(request.url.path, self.settings)
            try:
                await self._store(redis, key, ttl, fresh, body)
            except UnicodeDecodeError:
                logger.debug("cache_skip_binary", path=request.url.path)
            else:
                fresh.headers["X-Cache"] = "MISS"
                fresh.headers["X-Cache-TTL"] = str(ttl)
                fresh.headers["Cache-Control"] = f"public, max-age={ttl}"
        return fresh
