from fastapi import APIRouter

from .endpoints import health, live, timeline

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(timeline.router)
api_router.include_router(live.router)
