"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready). The platform
probes these to decide whether the container is alive and can take traffic.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from src.nodal_point.config import get_settings
from src.nodal_point.core.database import get_engine

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check. No external dependencies are touched."""
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


async def _check_database() -> dict:
    checks: dict = {"database": "ok"}
    try:
        engine = get_engine()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        checks["database"] = "error"
        checks["database_error"] = str(e)
    return checks


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness: the database must answer. Vendor configuration is reported
    but never fails the probe.

    Returns 200 when ready, 503 otherwise.
    """
    checks = await _check_database()
    settings = get_settings()
    poller = getattr(request.app.state, "forecast_poller", None)
    checks["twilio"] = "configured" if settings.twilio_configured else "not_configured"
    checks["forecast"] = (
        "not_started" if poller is None or poller.fetched_at is None
        else ("fresh" if poller.is_fresh() else "stale")
    )

    ready = checks["database"] == "ok"
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if ready else "degraded", "checks": checks},
    )
