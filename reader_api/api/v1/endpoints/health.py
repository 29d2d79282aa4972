"""
Health checks - for load balancers, Kubernetes, and monitoring.
Challenge: Fast liveness; readiness actually touches the connection pool.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from reader_api.config import get_settings
from reader_api.core.dependencies import DatabaseDep

router = APIRouter()
settings = get_settings()


@router.get("")
async def health():
    """Liveness: is the process up?"""
    return {"status": "ok", "app": settings.app_name}


@router.get("/ready")
async def ready(db: DatabaseDep):
    """Readiness: can the pool hand out a working connection?"""
    if not await db.connect():
        return JSONResponse(status_code=503, content={"status": "unavailable"})
    return {"status": "ready", "database": db.dialect_name}
