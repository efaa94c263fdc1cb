"""
Health check endpoints for deployment.

Provides:
- /health - Basic liveness check (is the app running?)
- /ready - Readiness check (can we reach Redis?)
"""

import json
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

# Service references (set during app initialization)
_redis_client = None


def set_health_dependencies(redis_client=None):
    """Set dependencies for health checks."""
    global _redis_client
    _redis_client = redis_client


@router.get("/health")
async def health_check():
    """Liveness check; always 200 while the process is up."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness check.

    Returns 503 if Redis, which holds every lobby record, is unreachable.
    """
    checks = {}
    healthy = True

    if _redis_client is not None:
        try:
            await _redis_client.ping()
            checks["redis"] = {"status": "ok"}
        except Exception as e:
            logger.warning(f"Redis health check failed: {e}")
            checks["redis"] = {"status": "error", "message": str(e)}
            healthy = False
    else:
        checks["redis"] = {"status": "not_configured"}
        healthy = False

    return Response(
        content=json.dumps({
            "status": "ok" if healthy else "degraded",
            "checks": checks,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }),
        status_code=200 if healthy else 503,
        media_type="application/json",
    )
