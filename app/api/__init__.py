from __future__ import annotations

from fastapi import APIRouter

from .health import router as health_router
from .places import router as places_router
from .explore import router as explore_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(places_router)
api_router.include_router(explore_router)
