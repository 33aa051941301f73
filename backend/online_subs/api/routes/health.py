"""Health Routes - process liveness and database readiness.

Invariants:
    - GET /api/v1/health/ answers 200 whenever the event loop is serving
    - GET /api/v1/health/ready answers 503 until init_db has run and SELECT 1 succeeds

Design Decisions:
    - db_manager is read off the database module per request, so a manager
      created in lifespan after this module was imported is still seen
"""

import logging
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

import online_subs.infrastructure.database as database

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Liveness: no IO."""
    return {
        "status": "healthy",
        "service": "online-subs-api",
        "version": "1.0.0",
    }


@router.get("/ready")
async def readiness_check():
    """Readiness: ping the database through the session manager."""
    manager = database.db_manager
    db_ok = await manager.health_check() if manager else False
    if not db_ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "reason": "database_unavailable",
            },
        )
    return {"status": "ready", "checks": {"database": "healthy"}}
