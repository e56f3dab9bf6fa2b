"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from hotel_booking.api.routes import booking

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(booking.router)
