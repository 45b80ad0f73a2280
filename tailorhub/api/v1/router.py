"""Aggregate all v1 API routers."""

from fastapi import APIRouter
from tailorhub.api.v1.health import router as health_router
from tailorhub.api.v1.orders import router as orders_router
from tailorhub.api.v1.tryon import router as tryon_router
from tailorhub.api.v1.uploads import router as uploads_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(uploads_router, tags=["uploads"])
v1_router.include_router(orders_router, tags=["orders"])
v1_router.include_router(tryon_router, tags=["tryon"])
