"""
Health check endpoints - used by load balancers and monitoring.

- GET /health         - basic liveness (always 200 if app running)
- GET /health/ready   - readiness check (DB + Redis)
- GET /health/workers - sweep heartbeat freshness
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text

from slotwise.config import APP_VERSION
from slotwise.database import get_db
from slotwise.workers.lifecycle import LIFECYCLE_SWEEPS
from slotwise.workers.scheduler import HEARTBEAT_KEY_PREFIX

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check - returns 200 if the app is running."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": APP_VERSION,
    }


@router.get("/health/ready")
async def readiness_check(
    db: AsyncSession = Depends(get_db),
):
    """Readiness check - verifies database and Redis connectivity."""
    checks = {"database": False, "redis": False}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = True
    except Exception as e:
        logger.error("Database health check failed: %s", str(e))

    try:
        from slotwise.utils.redis_client import get_redis
        redis = await get_redis()
        await redis.ping()
        checks["redis"] = True
    except Exception as e:
        logger.warning("Redis health check failed: %s", str(e))

    all_healthy = all(checks.values())
    return {
        "status": "ready" if all_healthy else "degraded",
        "checks": checks,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def heartbeat_age_seconds(heartbeat: Optional[str], now: Optional[datetime] = None) -> Optional[int]:
    if not heartbeat:
        return None
    try:
        written = datetime.fromisoformat(heartbeat)
    except ValueError:
        return None
    now = now or datetime.now(timezone.utc)
    return max(0, int((now - written).total_seconds()))


@router.get("/health/workers")
async def worker_health_check():
    """
    Last heartbeat per lifecycle sweep. A missing key means the sweep has not
    completed a run within twice its interval (the key's TTL).
    """
    try:
        from slotwise.utils.redis_client import get_redis
        redis = await get_redis()
        heartbeats = [await redis.get(f"{HEARTBEAT_KEY_PREFIX}{name}") for name in LIFECYCLE_SWEEPS]
    except Exception as e:
        logger.warning("Worker heartbeat check failed: %s", str(e))
        return {"healthy": False, "note": "Unable to check worker heartbeats"}

    now = datetime.now(timezone.utc)
    workers = {
        name: {
            "healthy": beat is not None,
            "last_heartbeat": beat,
            "age_seconds": heartbeat_age_seconds(beat, now),
        }
        for name, beat in zip(LIFECYCLE_SWEEPS, heartbeats)
    }
    return {"healthy": all(w["healthy"] for w in workers.values()), "workers": workers}
