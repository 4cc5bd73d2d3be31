# WORKFLOW: Health check endpoints for monitoring and operational status.
# Used by: Load balancers, monitoring systems, container orchestration
# Endpoints:
# 1. /healthz - Basic health check (always returns healthy)
# 2. /readyz - Readiness check against the price database
# 3. /livez - Liveness check for Kubernetes probes
#
# Readiness flow: Readiness check -> SELECT 1 on the database -> Ready/Not ready

from fastapi import APIRouter, Depends
import logging
from datetime import datetime, timezone

from api.dependencies import get_database
from core.config import settings
from db.session import Database

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/healthz")
async def health_check():
    """
    Basic health check endpoint.

    Returns:
        Health status of the API
    """
    return {
        "status": "healthy",
        "timestamp": _now(),
        "version": settings.version,
        "environment": settings.environment
    }


@router.get("/readyz")
def readiness_check(database: Database = Depends(get_database)):
    """
    Readiness check endpoint.

    The service is ready once the price database accepts queries.

    Returns:
        Readiness status with detailed checks
    """
    checks = {"database": database.check_db_connection()}
    is_ready = all(checks.values())
    if not is_ready:
        logger.warning(f"Readiness check failed: {checks}")

    return {
        "status": "ready" if is_ready else "not_ready",
        "timestamp": _now(),
        "checks": checks,
        "version": settings.version
    }


@router.get("/livez")
async def liveness_check():
    """
    Liveness check endpoint.
    Used by Kubernetes liveness probes.
    """
    return {
        "status": "alive",
        "timestamp": _now()
    }
