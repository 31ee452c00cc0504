"""API V1 Router"""

from fastapi import APIRouter

# Import endpoint routers
from school_enrollment.api.v1.endpoints import programs, enrollments, payments

# Create API v1 router
api_router = APIRouter()

# Include endpoint routers with prefixes and tags
api_router.include_router(programs.router, prefix="/programs", tags=["Programs"])
api_router.include_router(enrollments.router, prefix="/enrollments", tags=["Enrollments"])
api_router.include_router(payments.router, prefix="/payments", tags=["Payments"])
