"""
Exception handlers.

Domain errors raised by services and Stripe SDK errors become JSON bodies
of the form ``{"detail": ..., "error_code": ...}``.
"""

import structlog
import stripe
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.src.exceptions import AuthenticationError, StorefrontError
from storefront.src.services.payment_gateway import map_stripe_error

logger = structlog.get_logger(__name__)


def error_response(exc: StorefrontError) -> JSONResponse:
    headers = None
    if isinstance(exc, AuthenticationError):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def storefront_exception_handler(request: Request, exc: StorefrontError):
    """Handle domain errors raised by services."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "request_error",
        path=request.url.path,
        status_code=exc.status_code,
        error_code=exc.error_code,
        detail=exc.message
    )
    return error_response(exc)


async def stripe_exception_handler(request: Request, exc: stripe.StripeError):
    """Handle errors surfaced by the payment provider."""
    mapped = map_stripe_error(exc)
    logger.warning(
        "payment_provider_error",
        path=request.url.path,
        stripe_error=type(exc).__name__,
        status_code=mapped.status_code,
        error_code=mapped.error_code
    )
    return error_response(mapped)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    logger.warning(
        "validation_error",
        path=request.url.path,
        errors=jsonable_errors(exc)
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_errors(exc)}
    )


def jsonable_errors(exc: RequestValidationError):
    """Validation errors without the raw ``ctx`` objects, which may not serialize."""
    return [
        {key: value for key, value in error.items() if key != "ctx"}
        for error in exc.errors()
    ]


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    logger.warning(
        "http_exception",
        path=request.url.path,
        status_code=exc.status_code,
        detail=exc.detail
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None)
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(
        "unexpected_exception",
        path=request.url.path,
        error=str(exc),
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StorefrontError, storefront_exception_handler)
    app.add_exception_handler(stripe.StripeError, stripe_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, general_exception_handler)
