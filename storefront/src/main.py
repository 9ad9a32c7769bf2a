"""
FastAPI application entry point for the storefront API.

This module provides the main FastAPI application with:
- Catalog, cart, order, wishlist and payment routers
- Stripe webhook handling
- Health, readiness and dependency checks
- Prometheus metrics and OpenTelemetry tracing
- Security headers, CORS, compression, rate limiting and response caching
- Database pool, Redis and Stripe lifecycle management
"""

import structlog
import uvicorn
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from redis.asyncio import from_url as redis_from_url
from slowapi.middleware import SlowAPIMiddleware
from prometheus_client import CONTENT_TYPE_LATEST

from shared.logging import configure_logging
from shared.metrics import get_metrics, get_metrics_handler
from shared.tracing import configure_tracing
from storefront.src import dependencies
from storefront.src.config import Settings, get_settings
from storefront.src.db.schema import init_schema
from storefront.src.middleware import (
    ApiCacheMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    register_exception_handlers,
)
from storefront.src.rate_limit import limiter
from storefront.src.routers import carts, catalog, health, orders, payments, webhooks, wishlists
from storefront.src.services.payment_gateway import StripeGateway
from storefront.src.storage import ObjectStorage

logger = structlog.get_logger(__name__)


def build_stripe_gateway(settings: Settings):
    if not settings.stripe_enabled:
        logger.warning("stripe_not_configured")
        return None
    logger.info("stripe_configured", mode=settings.stripe_mode)
    return StripeGateway(
        api_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
        api_version=settings.stripe_api_version,
        currency=settings.stripe_currency,
        invoice_footer=settings.stripe_invoice_footer,
        invoice_days_until_due=settings.stripe_invoice_days_until_due
    )


def build_object_storage(settings: Settings):
    if not settings.s3_enabled:
        return None
    return ObjectStorage(
        endpoint_url=settings.s3_endpoint,
        access_key=settings.s3_access_key,
        secret_key=settings.s3_secret_key,
        bucket=settings.s3_bucket,
        region=settings.s3_region,
        connect_timeout=settings.health_check_timeout
    )


# ============================================================================
# Lifespan Management
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager for startup and shutdown events.

    Handles:
    - OpenTelemetry tracing setup
    - Database connection pool and optional schema creation
    - Redis client for the response cache
    - Stripe gateway and object storage clients
    - Graceful shutdown and resource cleanup
    """
    settings = get_settings()
    logger.info(
        "application_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment
    )

    app.state.redis = None
    app.state.stripe = build_stripe_gateway(settings)
    app.state.storage = build_object_storage(settings)

    try:
        if settings.tracing_enabled:
            logger.info("initializing_tracing", otlp_endpoint=settings.tracing_otlp_endpoint)
            configure_tracing(
                service_name=settings.app_name,
                otlp_endpoint=settings.tracing_otlp_endpoint,
                sampling_rate=settings.tracing_sample_rate,
                service_version=settings.app_version
            )

        pool = await dependencies.init_db_pool()
        async with pool.acquire() as conn:
            version = await conn.fetchval("SELECT version()")
            logger.info("database_connected", postgres_version=version)

        if settings.database_auto_migrate:
            statements = await init_schema(pool)
            logger.info("database_schema_ready", statements=statements)

        if settings.cache_enabled:
            app.state.redis = redis_from_url(settings.cache_redis_url, decode_responses=True)
            logger.info("response_cache_enabled", ttl=settings.cache_ttl)

        metrics = get_metrics()
        metrics.db_connections_active.set(pool.get_size())
        metrics.db_connections_idle.set(pool.get_idle_size())

        logger.info("application_started", app_name=settings.app_name, port=settings.port)

        yield

    except Exception as e:
        logger.error("application_startup_failed", error=str(e), exc_info=True)
        raise

    finally:
        logger.info("application_shutting_down")

        try:
            await dependencies.close_db_pool()

            if app.state.redis is not None:
                await app.state.redis.aclose()
                logger.info("redis_closed")

            if settings.tracing_enabled:
                logger.info("shutting_down_tracing")
                trace.get_tracer_provider().shutdown()

            logger.info("application_shutdown_complete")

        except Exception as e:
            logger.error("application_shutdown_failed", error=str(e), exc_info=True)


# ============================================================================
# FastAPI Application
# ============================================================================

def create_app(settings: Settings = None) -> FastAPI:
    """Build the application with middleware, handlers and routers."""
    settings = settings or get_settings()

    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.log_format == "json",
        service_name=settings.app_name,
        environment=settings.environment
    )

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Storefront API for an art-print shop: catalog, carts, orders, wishlists and payments.",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.limiter = limiter
    app.state.redis = None
    app.state.stripe = None
    app.state.storage = None

    # Innermost first: the last middleware added sees the request first.
    if settings.cache_enabled:
        app.add_middleware(ApiCacheMiddleware, settings=settings)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(GZipMiddleware, minimum_size=settings.compression_min_size)
    if settings.cors_enabled:
        logger.info("configuring_cors", origins=settings.cors_origins)
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=settings.cors_allow_credentials,
            allow_methods=settings.cors_allow_methods,
            allow_headers=settings.cors_allow_headers,
            max_age=settings.cors_max_age,
        )
    if settings.security_headers_enabled:
        app.add_middleware(SecurityHeadersMiddleware, settings=settings)

    register_exception_handlers(app)

    prefix = settings.api_prefix
    app.include_router(health.router)
    app.include_router(health.router, prefix=prefix)
    app.include_router(catalog.artworks_router, prefix=prefix)
    app.include_router(catalog.paper_types_router, prefix=prefix)
    app.include_router(catalog.artists_router, prefix=prefix)
    app.include_router(carts.carts_router, prefix=prefix)
    app.include_router(carts.cart_items_router, prefix=prefix)
    app.include_router(orders.orders_router, prefix=prefix)
    app.include_router(orders.ordered_items_router, prefix=prefix)
    app.include_router(wishlists.router, prefix=prefix)
    app.include_router(payments.stripe_router, prefix=prefix)
    app.include_router(payments.payment_router, prefix=prefix)
    app.include_router(webhooks.router, prefix=prefix)

    if settings.metrics_enabled:
        render_metrics = get_metrics_handler()

        @app.get("/metrics", tags=["Monitoring"], include_in_schema=False)
        @limiter.exempt
        async def metrics() -> Response:
            """Prometheus metrics endpoint."""
            pool = dependencies._pool
            if pool is not None:
                get_metrics().db_connections_active.set(pool.get_size())
                get_metrics().db_connections_idle.set(pool.get_idle_size())
            return Response(content=render_metrics(), media_type=CONTENT_TYPE_LATEST)

    if settings.tracing_enabled:
        FastAPIInstrumentor.instrument_app(app)

    return app


app = create_app()


# ============================================================================
# Application Entry Point
# ============================================================================

if __name__ == "__main__":
    settings = get_settings()
    logger.info(
        "starting_uvicorn_server",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )

    uvicorn.run(
        "storefront.src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )
