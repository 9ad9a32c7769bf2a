"""
Request logging and HTTP metrics.

Every request gets a correlation id, taken from ``X-Correlation-ID`` or
generated, which is bound into the structlog context for the duration of
the request and echoed on the response.
"""

import time
import uuid
from typing import Callable

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from shared.logging import bind_context, clear_context
from shared.metrics import get_metrics

logger = structlog.get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


def endpoint_label(request: Request) -> str:
    """Route template when matched, so path ids do not explode label cardinality."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request logging and metrics."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id

        method = request.method
        path = request.url.path
        client_ip = request.client.host if request.client else "unknown"
        metrics = get_metrics()

        clear_context()
        bind_context(correlation_id=correlation_id)
        metrics.http_requests_in_progress.labels(method=method).inc()
        start_time = time.perf_counter()

        logger.info(
            "request_started",
            method=method,
            path=path,
            client_ip=client_ip
        )

        try:
            response = await call_next(request)
            duration = time.perf_counter() - start_time
            endpoint = endpoint_label(request)

            metrics.http_requests.labels(
                method=method,
                endpoint=endpoint,
                status=response.status_code
            ).inc()
            metrics.http_request_duration.labels(
                method=method,
                endpoint=endpoint
            ).observe(duration)

            logger.info(
                "request_completed",
                method=method,
                path=path,
                status_code=response.status_code,
                duration=f"{duration:.3f}s"
            )

            response.headers[CORRELATION_HEADER] = correlation_id
            return response

        except Exception as e:
            duration = time.perf_counter() - start_time
            logger.error(
                "request_failed",
                method=method,
                path=path,
                error=str(e),
                duration=f"{duration:.3f}s",
                exc_info=True
            )
            raise

        finally:
            metrics.http_requests_in_progress.labels(method=method).dec()
            clear_context()
