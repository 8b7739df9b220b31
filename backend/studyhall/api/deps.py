"""
FastAPI dependencies resolving the engine objects from application state.
"""

from fastapi import Request

from studyhall.services.container import ServiceContainer
from studyhall.services.membership_service import MembershipService
from studyhall.services.scheduler import ReconciliationScheduler
from studyhall.services.seat_coordinator import SeatCoordinator


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_membership_service(request: Request) -> MembershipService:
    return get_container(request).memberships


def get_seat_coordinator(request: Request) -> SeatCoordinator:
    return get_container(request).seat_coordinator


def get_scheduler(request: Request) -> ReconciliationScheduler:
    return get_container(request).scheduler
