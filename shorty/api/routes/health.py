"""Health check endpoints for monitoring application status."""

import time

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from shorty.core.config import settings
from shorty.core.rate_limit import middleware as rate_limit
from shorty.db.base import DatabaseHealthCheck
from shorty.scheduler.scheduler import scheduler_service

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    status_code=status.HTTP_200_OK,
    summary="Get system health status",
    response_description="Health status of all system components",
)
async def health_check():
    """Check health of the database, the rate limit store and the scheduler."""
    health_status = {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT.value,
        "timestamp": time.time(),
        "components": {},
    }

    database = await DatabaseHealthCheck.check_connection()
    health_status["components"]["database"] = database
    if database["status"] != "healthy":
        health_status["status"] = "degraded"

    backend = rate_limit.rate_limit_backend
    if backend is not None:
        health_status["components"]["rate_limit"] = {
            "status": "healthy" if backend.using_redis else "degraded",
            "store": "redis" if backend.using_redis else "memory",
        }

    if settings.SCHEDULER_ENABLED:
        scheduler = scheduler_service.get_status()
        health_status["components"]["scheduler"] = {
            "status": "healthy" if scheduler["running"] else "stopped",
            "jobs": scheduler["scheduler_jobs_status"],
        }

    return health_status


@router.get(
    "/health/ready",
    summary="Readiness probe",
    response_description="Application readiness status",
)
async def readiness_probe():
    """Check if application is ready to handle requests."""
    database = await DatabaseHealthCheck.check_connection()
    components_status = {"api": True, "database": database["status"] == "healthy"}
    is_ready = all(components_status.values())

    return JSONResponse(
        status_code=status.HTTP_200_OK if is_ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"ready": is_ready, "components": components_status},
    )


@router.get(
    "/health/live",
    status_code=status.HTTP_200_OK,
    summary="Liveness probe",
    response_description="Application liveness status",
)
async def liveness_probe():
    """Simple check that application is running."""
    return {"alive": True}
