"""
In-memory store implementations.
Used by the test suite and for running the service without a database.
Each call yields to the event loop once so concurrent callers interleave
the way they would against a real database.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Optional

from studyhall.core.exceptions import SeatUnavailableError, StoreUnavailableError
from studyhall.schemas.enums import SeatStatus
from studyhall.schemas.membership import Membership, Payment
from studyhall.schemas.seat import Seat, SeatOccupant
from studyhall.schemas.settings import FacilitySettings
from studyhall.services.interfaces.stores import MembershipStore, SeatStore, SettingsStore


class _Store:
    def __init__(self):
        self.available = True

    async def _io(self) -> None:
        await asyncio.sleep(0)
        if not self.available:
            raise StoreUnavailableError(f"{type(self).__name__} is unavailable")


class InMemoryMembershipStore(_Store, MembershipStore):

    def __init__(self, memberships: Optional[list[Membership]] = None):
        super().__init__()
        self._memberships: dict[str, Membership] = {m.id: m for m in memberships or []}
        self._payments: list[Payment] = []
        self.logs: list[dict[str, Any]] = []

    async def list_all(self) -> list[Membership]:
        await self._io()
        return [m.model_copy() for m in self._memberships.values()]

    async def get(self, membership_id: str) -> Optional[Membership]:
        await self._io()
        membership = self._memberships.get(membership_id)
        return membership.model_copy() if membership else None

    async def create(self, membership: Membership) -> Membership:
        await self._io()
        self._memberships[membership.id] = membership.model_copy()
        return membership

    async def update(self, membership_id: str, fields: dict[str, Any]) -> Optional[Membership]:
        await self._io()
        current = self._memberships.get(membership_id)
        if current is None:
            return None
        updated = current.model_copy(update=fields)
        self._memberships[membership_id] = updated
        return updated.model_copy()

    async def delete(self, membership_id: str) -> bool:
        await self._io()
        return self._memberships.pop(membership_id, None) is not None

    async def add_payment(self, payment: Payment) -> Payment:
        await self._io()
        stored = payment.model_copy(update={"id": len(self._payments) + 1})
        self._payments.append(stored)
        return stored

    async def list_payments(self, membership_id: str) -> list[Payment]:
        await self._io()
        return sorted(
            (p for p in self._payments if p.membership_id == membership_id),
            key=lambda p: p.paid_on,
        )

    async def add_log(self, membership_id: str, action: str, actor: str = "system") -> None:
        await self._io()
        self.logs.append({
            "membership_id": membership_id,
            "action": action,
            "actor": actor,
            "timestamp": datetime.now(timezone.utc),
        })


class InMemorySeatStore(_Store, SeatStore):

    def __init__(self, count: int = 0):
        super().__init__()
        self._seats: dict[int, Seat] = {n: Seat(number=n) for n in range(1, count + 1)}

    async def get(self, number: int) -> Optional[Seat]:
        await self._io()
        seat = self._seats.get(number)
        return seat.model_copy(deep=True) if seat else None

    async def list_all(self) -> list[Seat]:
        await self._io()
        return [self._seats[n].model_copy(deep=True) for n in sorted(self._seats)]

    async def occupy(self, number: int, slot: str, membership_id: str, status: SeatStatus) -> Optional[Seat]:
        await self._io()
        seat = self._seats.get(number)
        if seat is None:
            return None
        current = seat.occupants.get(slot)
        if current and current.membership_id != membership_id:
            raise SeatUnavailableError(number, slot, current.membership_id)
        seat.occupants[slot] = SeatOccupant(membership_id=membership_id, status=status)
        return seat.model_copy(deep=True)

    async def vacate(self, number: int, slot: str) -> Optional[Seat]:
        await self._io()
        seat = self._seats.get(number)
        if seat is None:
            return None
        seat.occupants.pop(slot, None)
        return seat.model_copy(deep=True)

    async def set_status(self, number: int, slot: str, status: SeatStatus) -> Optional[Seat]:
        await self._io()
        seat = self._seats.get(number)
        if seat is None or slot not in seat.occupants:
            return None
        seat.occupants[slot].status = status
        return seat.model_copy(deep=True)

    async def provision(self, count: int) -> int:
        await self._io()
        created = 0
        for number in range(1, count + 1):
            if number not in self._seats:
                self._seats[number] = Seat(number=number)
                created += 1
        return created


class InMemorySettingsStore(_Store, SettingsStore):

    def __init__(self, settings: Optional[FacilitySettings] = None):
        super().__init__()
        self._settings = settings or FacilitySettings()

    async def get(self) -> FacilitySettings:
        await self._io()
        return self._settings.model_copy(deep=True)

    async def update(self, settings: FacilitySettings) -> FacilitySettings:
        await self._io()
        self._settings = settings.model_copy(deep=True)
        return settings
