"""
Health Check Endpoints
======================

API health check endpoints for monitoring and container probes.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Dict, Optional
from enum import Enum

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.dependencies import get_asset_store, get_user_store
from api.services.asset_store import AssetStoreProtocol
from api.services.user_store import UserStoreProtocol
from exceptions import DocumentStoreError


# Set up module logger
logger = logging.getLogger(__name__)

router = APIRouter()


class ServiceStatus(str, Enum):
    """Service health status enumeration."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ServiceCheckResult(BaseModel):
    """Result of an individual service health check."""
    status: ServiceStatus = Field(description="Service health status")
    message: Optional[str] = Field(None, description="Status message or error details")
    latency_ms: Optional[float] = Field(None, description="Check latency in milliseconds")


class HealthCheckResponse(BaseModel):
    """Health check response."""
    status: ServiceStatus = Field(description="Overall health status")
    timestamp: str = Field(description="ISO 8601 timestamp of the health check")
    services: Dict[str, ServiceCheckResult] = Field(description="Individual service statuses")


class LivenessResponse(BaseModel):
    """Liveness probe response."""
    status: str = Field(description="Liveness status")
    timestamp: str = Field(description="ISO 8601 timestamp")


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


async def check_user_store(user_store: UserStoreProtocol) -> ServiceCheckResult:
    """
    Check document store connectivity.

    Args:
        user_store: The configured user store

    Returns:
        ServiceCheckResult with document store health status
    """
    start_time = time.time()
    try:
        await user_store.ping()
    except DocumentStoreError as e:
        logger.warning(f"Document store health check failed: {e}")
        return ServiceCheckResult(
            status=ServiceStatus.UNHEALTHY,
            message=f"Connection failed: {e.message}"
        )

    latency_ms = (time.time() - start_time) * 1000
    return ServiceCheckResult(
        status=ServiceStatus.HEALTHY,
        message=f"Connected ({type(user_store).__name__})",
        latency_ms=round(latency_ms, 2)
    )


def check_asset_store(asset_store: Optional[AssetStoreProtocol]) -> ServiceCheckResult:
    """Report whether the asset store is configured (no network call)."""
    if asset_store is None:
        return ServiceCheckResult(
            status=ServiceStatus.DEGRADED,
            message="Asset store not configured, registration is unavailable"
        )
    return ServiceCheckResult(status=ServiceStatus.HEALTHY, message="Configured")


def determine_overall_status(services: Dict[str, ServiceCheckResult]) -> ServiceStatus:
    """
    Determine overall health status based on individual service statuses.

    - UNHEALTHY: the document store is unhealthy
    - DEGRADED: any other service is not healthy
    - HEALTHY: everything is healthy
    """
    if services["database"].status == ServiceStatus.UNHEALTHY:
        return ServiceStatus.UNHEALTHY
    if any(s.status != ServiceStatus.HEALTHY for s in services.values()):
        return ServiceStatus.DEGRADED
    return ServiceStatus.HEALTHY


@router.get("/health", response_model=HealthCheckResponse, summary="Health check")
async def health_check(
    user_store: UserStoreProtocol = Depends(get_user_store),
    asset_store: Optional[AssetStoreProtocol] = Depends(get_asset_store)
) -> HealthCheckResponse:
    """
    Check the document store and the asset store configuration.

    Returns HTTP 200 with detailed status information even if some
    services are degraded. Use the 'status' field to determine health.
    """
    logger.debug("Performing health check")

    services = {
        "api": ServiceCheckResult(status=ServiceStatus.HEALTHY, message="API is running"),
        "database": await check_user_store(user_store),
        "asset_store": check_asset_store(asset_store),
    }
    overall_status = determine_overall_status(services)

    if overall_status != ServiceStatus.HEALTHY:
        unhealthy_services = [
            name for name, check in services.items()
            if check.status != ServiceStatus.HEALTHY
        ]
        logger.warning(f"Unhealthy/degraded services: {unhealthy_services}")

    return HealthCheckResponse(
        status=overall_status,
        timestamp=_timestamp(),
        services=services
    )


@router.get("/health/live", response_model=LivenessResponse, summary="Liveness probe")
async def liveness_probe() -> LivenessResponse:
    """
    Check if the application process is alive.

    Does not check external dependencies.
    """
    return LivenessResponse(status="alive", timestamp=_timestamp())
