"""API Routes."""

from fastapi import APIRouter

from .health import router as health_router
from .plans import router as plans_router
from .usage import router as usage_router

# Create main API router
api_router = APIRouter()

# Include route modules
api_router.include_router(health_router, tags=["Health"])
api_router.include_router(plans_router)
api_router.include_router(usage_router)
