"""API routes for Al-Hadi Media"""

from fastapi import APIRouter

from .live import router as live_router
from .programs import router as programs_router
from .uploads import router as uploads_router

api_router = APIRouter(prefix="/api")

api_router.include_router(uploads_router, tags=["Uploads"])
api_router.include_router(live_router, tags=["Live"])
api_router.include_router(programs_router, tags=["Programs"])

__all__ = ["api_router"]
