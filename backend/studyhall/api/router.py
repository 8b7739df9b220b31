"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from studyhall.api.routes import memberships, seats, scheduler

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(memberships.router)
api_router.include_router(seats.router)
api_router.include_router(scheduler.router)
