"""API routes."""

from quota_engine.api.routes.employers import router as employers_router
from quota_engine.api.routes.health import router as health_router
from quota_engine.api.routes.job_orders import router as job_orders_router
from quota_engine.api.routes.permits import router as permits_router
from quota_engine.api.routes.quota import router as quota_router

__all__ = [
    "employers_router",
    "health_router",
    "job_orders_router",
    "permits_router",
    "quota_router",
]
