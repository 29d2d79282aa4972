"""
API v1 router - aggregates endpoint modules. Only operational probes are exposed.
"""

from fastapi import APIRouter

from reader_api.api.v1.endpoints import health

api_router = APIRouter(prefix="/v1")

api_router.include_router(health.router, prefix="/health", tags=["health"])
