"""
Seat inventory and claim diagnostics.
"""

from fastapi import APIRouter, Depends

from studyhall.api.deps import get_seat_coordinator
from studyhall.core.exceptions import SeatNotFoundError
from studyhall.schemas.seat import LockStatus, Seat
from studyhall.services.seat_coordinator import SeatCoordinator

router = APIRouter(prefix="/seats", tags=["Seats"])


@router.get("/", response_model=list[Seat])
async def list_seats(coordinator: SeatCoordinator = Depends(get_seat_coordinator)):
    return await coordinator.seat_store.list_all()


@router.get("/locks", response_model=list[LockStatus])
async def list_locks(coordinator: SeatCoordinator = Depends(get_seat_coordinator)):
    """Claims currently held by in-flight reservations."""
    return coordinator.all_locks()


@router.get("/{seat_number}", response_model=Seat)
async def get_seat(seat_number: int, coordinator: SeatCoordinator = Depends(get_seat_coordinator)):
    seat = await coordinator.seat_store.get(seat_number)
    if seat is None:
        raise SeatNotFoundError(seat_number)
    return seat


@router.get("/{seat_number}/lock", response_model=LockStatus)
async def get_lock_status(seat_number: int, coordinator: SeatCoordinator = Depends(get_seat_coordinator)):
    return coordinator.lock_status(seat_number)
