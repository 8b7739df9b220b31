"""
Pydantic schemas for seats, seat occupancy and reservation results.

A seat is occupied per time slot: the same seat number can be held by one
membership in the Morning and another in the Evening.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from studyhall.schemas.enums import SeatStatus


class SeatOccupant(BaseModel):
    membership_id: str
    status: SeatStatus = SeatStatus.DUE


class Seat(BaseModel):
    number: int
    occupants: dict[str, SeatOccupant] = Field(default_factory=dict)

    def occupant_for(self, slot: str) -> Optional[SeatOccupant]:
        return self.occupants.get(slot)

    def slot_of(self, membership_id: str) -> Optional[str]:
        for slot, occupant in self.occupants.items():
            if occupant.membership_id == membership_id:
                return slot
        return None

    @property
    def status(self) -> SeatStatus:
        """Most urgent occupant status, or available when nobody holds the seat."""
        if not self.occupants:
            return SeatStatus.AVAILABLE
        order = [SeatStatus.PAID, SeatStatus.DUE, SeatStatus.EXPIRED]
        return max((o.status for o in self.occupants.values()), key=order.index)


class ReservationOutcome(str, Enum):
    RESERVED = "reserved"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"


class ReservationResult(BaseModel):
    outcome: ReservationOutcome
    seat_number: int
    slot: str
    occupant_id: Optional[str] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome == ReservationOutcome.RESERVED


class LockStatus(BaseModel):
    seat_number: int
    locked: bool
    holder: Optional[str] = None
    remaining_ms: Optional[int] = None
