"""API routes for Approval Orbit."""

from fastapi import APIRouter

from .mockups import router as mockups_router
from .projects import router as projects_router
from .reviews import router as reviews_router
from .workflows import router as workflows_router

# Main API router
api_router = APIRouter()

# Mockup routes carry the approval flow and the final approval gate
api_router.include_router(mockups_router)
api_router.include_router(workflows_router)
api_router.include_router(projects_router)
api_router.include_router(reviews_router)

__all__ = ["api_router"]
