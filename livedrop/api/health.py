from fastapi import APIRouter, HTTPException
from livedrop.core.config import settings
from livedrop.database import check_database_health
from livedrop.utils.time_utils import utc_now

router = APIRouter()


def _describe(status):
    if status is None:
        return "disabled"
    return "connected" if status else "disconnected"


@router.get("/health")
async def health_check():
    """Application health check endpoint"""
    db_health = await check_database_health()

    overall_status = "healthy" if db_health["overall"] else "unhealthy"

    return {
        "status": overall_status,
        "timestamp": utc_now(),
        "backends": {
            "mongodb": _describe(db_health["mongodb"]),
            "redis": _describe(db_health["redis"])
        },
        "storage_backend": settings.storage_backend,
        "broadcast_backend": settings.broadcast_backend,
        "service": settings.app_name
    }


@router.get("/health/ready")
async def readiness_check():
    """Kubernetes readiness probe endpoint"""
    db_health = await check_database_health()

    if not db_health["overall"]:
        raise HTTPException(
            status_code=503,
            detail="Service not ready - backend connections failed"
        )

    return {"status": "ready"}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes liveness probe endpoint"""
    return {"status": "alive", "timestamp": utc_now()}
