"""Health check models."""

from typing import Literal

from pydantic import BaseModel, Field


class ServiceStatus(BaseModel):
    """Generator or market data provider status."""

    name: str
    status: Literal["healthy", "unhealthy", "unknown"]
    message: str = ""


class CacheStats(BaseModel):
    """Occupancy and hit counters of one cache."""

    size: int
    capacity: int
    ttl_seconds: float
    hits: int = 0
    misses: int = 0


class HealthStatus(BaseModel):
    """Overall health status."""

    status: Literal["healthy", "degraded", "unhealthy"]
    services: dict[str, ServiceStatus]
    caches: dict[str, CacheStats] = Field(default_factory=dict)
    version: str = "0.1.0"
