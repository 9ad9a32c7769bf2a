"""
Dependency health checks.

Each check measures one backing service and reports a ``CheckResult``.
Checks run concurrently under a per-check timeout; the overall status is
derived from the individual outcomes.
"""

import asyncio
import os
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import asyncpg
import psutil
import structlog

from shared.metrics import get_metrics
from storefront.src.config import get_settings
from storefront.src.models.health import HealthStatus, CheckResult, CheckStatus
from storefront.src.services.payment_gateway import StripeGateway
from storefront.src.storage import ObjectStorage

logger = structlog.get_logger(__name__)

Check = Callable[[], Awaitable[Dict[str, Any]]]


def overall_status(results: Dict[str, CheckResult]) -> HealthStatus:
    """
    Any failing check makes the service unhealthy; a timeout only degrades it.
    Skipped checks are ignored.
    """
    statuses = {r.status for r in results.values()}
    if CheckStatus.ERROR in statuses:
        return HealthStatus.UNHEALTHY
    if CheckStatus.TIMEOUT in statuses:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


def uptime_seconds() -> float:
    return round(time.time() - psutil.Process(os.getpid()).create_time(), 1)


def system_metrics() -> Dict[str, Any]:
    """Process and host resource usage."""
    process = psutil.Process(os.getpid())
    memory = psutil.virtual_memory()
    try:
        load_average = [round(v, 2) for v in os.getloadavg()]
    except OSError:
        load_average = None
    return {
        "uptime": uptime_seconds(),
        "memory": {
            "processRssMb": round(process.memory_info().rss / (1024 * 1024), 2),
            "systemUsedPercent": memory.percent,
        },
        "cpu": {
            "percent": psutil.cpu_percent(interval=None),
            "cores": psutil.cpu_count(),
            "loadAverage": load_average,
        },
    }


class HealthService:
    """Checks the database, cache, object storage and payment provider."""

    def __init__(
        self,
        pool: Optional[asyncpg.Pool],
        redis: Any = None,
        storage: Optional[ObjectStorage] = None,
        gateway: Optional[StripeGateway] = None,
        timeout: Optional[float] = None
    ):
        """
        Initialize health service.

        Args:
            pool: Database pool
            redis: ``redis.asyncio`` client, None when caching is off
            storage: Object storage client, None when unconfigured
            gateway: Stripe gateway, None when unconfigured
            timeout: Per-check timeout in seconds
        """
        self.pool = pool
        self.redis = redis
        self.storage = storage
        self.gateway = gateway
        self.timeout = timeout if timeout is not None else get_settings().health_check_timeout

    # ========================================================================
    # Check runner
    # ========================================================================

    async def _run(self, service: str, check: Optional[Check], skip_reason: str) -> CheckResult:
        """Run one check under the timeout and record its outcome."""
        if check is None:
            return CheckResult(status=CheckStatus.SKIPPED, message=skip_reason)

        metrics = get_metrics()
        start = time.perf_counter()
        try:
            details = await asyncio.wait_for(check(), timeout=self.timeout)
            result = CheckResult(status=CheckStatus.OK, details=details)
        except asyncio.TimeoutError:
            logger.warning("health_check_timeout", service=service, timeout=self.timeout)
            result = CheckResult(
                status=CheckStatus.TIMEOUT,
                message=f"No response within {self.timeout}s"
            )
        except Exception as e:
            logger.error("health_check_failed", service=service, error=str(e))
            result = CheckResult(status=CheckStatus.ERROR, message=str(e) or type(e).__name__)

        elapsed = time.perf_counter() - start
        result.responseTime = round(elapsed * 1000, 2)
        metrics.health_check_duration.labels(service=service).observe(elapsed)
        metrics.health_check_status.labels(service=service).set(1 if result.status == CheckStatus.OK else 0)
        return result

    # ========================================================================
    # Checks
    # ========================================================================

    async def _ping_database(self) -> Dict[str, Any]:
        async with self.pool.acquire() as conn:
            version = await conn.fetchval("SELECT version()")
        return {
            "version": version,
            "poolSize": self.pool.get_size(),
            "poolIdle": self.pool.get_idle_size(),
        }

    async def _ping_redis(self) -> Dict[str, Any]:
        await self.redis.ping()
        info = await self.redis.info("server")
        return {"version": info.get("redis_version")}

    async def _ping_storage(self) -> Dict[str, Any]:
        return await self.storage.ping()

    async def _ping_payment_gateway(self) -> Dict[str, Any]:
        return await self.gateway.ping()

    async def check_database(self) -> CheckResult:
        return await self._run(
            "database",
            self._ping_database if self.pool is not None else None,
            "Database pool not initialized"
        )

    async def check_redis(self) -> CheckResult:
        return await self._run(
            "redis",
            self._ping_redis if self.redis is not None else None,
            "Redis not configured"
        )

    async def check_object_storage(self) -> CheckResult:
        return await self._run(
            "storage",
            self._ping_storage if self.storage is not None else None,
            "Object storage not configured"
        )

    async def check_payment_gateway(self) -> CheckResult:
        return await self._run(
            "stripe",
            self._ping_payment_gateway if self.gateway is not None else None,
            "Stripe not configured"
        )

    async def run_all(self) -> Tuple[HealthStatus, Dict[str, CheckResult]]:
        """
        Check every dependency concurrently.

        Returns:
            Tuple of (overall status, results keyed by service)
        """
        names = ("database", "redis", "storage", "stripe")
        outcomes = await asyncio.gather(
            self.check_database(),
            self.check_redis(),
            self.check_object_storage(),
            self.check_payment_gateway(),
            return_exceptions=True
        )

        results: Dict[str, CheckResult] = {}
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("health_check_crashed", service=name, error=str(outcome))
                outcome = CheckResult(status=CheckStatus.ERROR, message=str(outcome))
            results[name] = outcome

        status = overall_status(results)
        if status != HealthStatus.HEALTHY:
            logger.warning(
                "health_degraded",
                status=status.value,
                failing=[n for n, r in results.items() if r.status in (CheckStatus.ERROR, CheckStatus.TIMEOUT)]
            )
        return status, results

    # ========================================================================
    # Reports
    # ========================================================================

    @staticmethod
    def timestamp() -> str:
        return datetime.now(timezone.utc).isoformat()

    async def advanced_report(self) -> Tuple[HealthStatus, Dict[str, Any]]:
        start = time.perf_counter()
        status, results = await self.run_all()
        return status, {
            "status": status.value,
            "timestamp": self.timestamp(),
            "system": system_metrics(),
            "services": {name: r.model_dump(mode="json") for name, r in results.items()},
            "responseTime": round((time.perf_counter() - start) * 1000, 2),
        }

    async def detailed_report(self) -> Tuple[HealthStatus, Dict[str, Any]]:
        """Advanced report plus environment and the configured alert thresholds."""
        settings = get_settings()
        status, report = await self.advanced_report()
        report["environment"] = {
            "name": settings.environment,
            "version": settings.app_version,
            "debug": settings.debug,
            "stripeMode": settings.stripe_mode,
        }
        report["alerting"] = {
            "channels": settings.alert_channels,
            "thresholds": {
                "cpuPercent": settings.alert_cpu_threshold,
                "memoryPercent": settings.alert_memory_threshold,
                "responseTimeMs": settings.alert_response_time_threshold,
                "errorRate": settings.alert_error_rate_threshold,
            },
        }
        return status, report
