"""
Health and readiness endpoints.

``/health`` and ``/health/ping`` are liveness checks that touch nothing.
``/ready`` checks the database only. ``/health/advanced`` and
``/health/detailed`` check every configured dependency concurrently.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from storefront.src.config import get_settings
from storefront.src.dependencies import get_health_service
from storefront.src.models.health import HealthStatus, CheckStatus
from storefront.src.rate_limit import limiter
from storefront.src.services.health_service import HealthService, uptime_seconds

router = APIRouter(tags=["Health"])


def _status_code(overall: HealthStatus) -> int:
    if overall == HealthStatus.UNHEALTHY:
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_200_OK


@router.get("/health", response_class=JSONResponse)
@limiter.exempt
async def health_check() -> Dict[str, Any]:
    """
    Health check endpoint.

    Returns basic health status without checking dependencies.
    Use for container health checks.
    """
    settings = get_settings()
    return {
        "status": HealthStatus.HEALTHY.value,
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "timestamp": HealthService.timestamp(),
        "uptime": uptime_seconds(),
    }


@router.get("/health/ping")
@limiter.exempt
async def ping() -> Dict[str, Any]:
    return {"status": "pong", "timestamp": HealthService.timestamp()}


@router.get("/ready", response_class=JSONResponse)
@limiter.exempt
async def readiness_check(health_service: HealthService = Depends(get_health_service)):
    """
    Readiness check endpoint.

    Returns 503 until the database answers.
    """
    settings = get_settings()
    result = await health_service.check_database()
    ready = result.status == CheckStatus.OK
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if ready else "not_ready",
            "service": settings.app_name,
            "version": settings.app_version,
            "checks": {"database": result.model_dump(mode="json")},
        }
    )


@router.get("/health/advanced", response_class=JSONResponse)
@limiter.exempt
async def advanced_health(health_service: HealthService = Depends(get_health_service)):
    """System resources plus a concurrent check of every dependency."""
    overall, report = await health_service.advanced_report()
    return JSONResponse(status_code=_status_code(overall), content=report)


@router.get("/health/detailed", response_class=JSONResponse)
@limiter.exempt
async def detailed_health(health_service: HealthService = Depends(get_health_service)):
    """Advanced report plus environment details and alert thresholds."""
    overall, report = await health_service.detailed_report()
    return JSONResponse(status_code=_status_code(overall), content=report)
