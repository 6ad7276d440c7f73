"""API v1 routes."""

from fastapi import APIRouter

from scholarships.api.v1 import applications, cycles

api_router = APIRouter()

# Include all route modules
api_router.include_router(cycles.router, prefix="/cycles", tags=["Scholarship Cycles"])
api_router.include_router(applications.router, prefix="/applications", tags=["Applications"])
