"""Health check models."""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class HealthStatus(str, Enum):
    """Overall health."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


class CheckStatus(str, Enum):
    """Outcome of a single dependency check."""

    OK = "ok"
    ERROR = "error"
    TIMEOUT = "timeout"
    SKIPPED = "skipped"


class CheckResult(BaseModel):
    """Result of probing one dependency."""
    status: CheckStatus
    responseTime: Optional[float] = Field(None, description="Milliseconds")
    message: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
