"""
Seat claim arbitration for the registration path.

CONCURRENCY STRATEGY: Short-lived claims, fail fast
===================================================

Problem:
  Two people register for seat 5, Morning slot, at the same moment.
  Both read the seat as free, both write themselves as occupant.
  Result: Double-booked seat, the second write silently wins.

Solution:
  An in-process claim arena keyed by seat number, {holder, expires_at}.

  1. Sweep claims whose expiry has passed (abandoned reservations)
  2. Claim held by someone else -> Conflict, immediately (no queueing)
  3. Record our claim, valid for SEAT_LOCK_TIMEOUT_SECONDS
  4. Re-read the seat; occupied in the same slot by someone else -> Conflict
  5. Write the occupancy; the store refuses to replace a different
     occupant, which also reports as Conflict
  6. Shorten our claim to SEAT_LOCK_HOLD_SECONDS so a duplicate request
     arriving right after the write still bounces off the claim

  The arena is guarded by one mutex. Critical sections never do I/O, so
  requests for different seats never wait on each other's store calls.

  Claims live in process memory only. Running several instances would need
  a distributed lock in place of the arena.
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from studyhall.core.exceptions import SeatUnavailableError
from studyhall.core.logging import get_logger
from studyhall.core.metrics import record_reservation, seat_locks_active
from studyhall.schemas.enums import SeatStatus
from studyhall.schemas.seat import LockStatus, ReservationOutcome, ReservationResult
from studyhall.services.interfaces.stores import SeatStore

logger = get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SeatClaim:
    holder: str
    expires_at: datetime


class SeatCoordinator:

    def __init__(
        self,
        seat_store: SeatStore,
        lock_timeout_seconds: float = 30,
        hold_seconds: float = 5,
        clock: Clock = utc_now,
    ):
        self.seat_store = seat_store
        self.lock_timeout = timedelta(seconds=lock_timeout_seconds)
        self.hold = timedelta(seconds=hold_seconds)
        self._clock = clock
        self._claims: dict[int, SeatClaim] = {}
        self._mutex = threading.Lock()

    async def reserve(
        self,
        seat_number: int,
        claimant_id: str,
        slot: str,
        status: SeatStatus = SeatStatus.DUE,
    ) -> ReservationResult:
        """
        Claim a seat for a slot and persist the occupancy.

        Never blocks on another claimant: a held claim or an occupied slot
        returns a CONFLICT result. Store errors release the claim and propagate.
        """
        with self._mutex:
            now = self._clock()
            self._sweep(now)
            claim = self._claims.get(seat_number)
            if claim and claim.holder != claimant_id:
                return self._conflict(
                    seat_number, slot, claimant_id, claim.holder, "locked",
                    "Seat is currently being reserved by another member. Please try again in a moment.",
                )
            self._claims[seat_number] = SeatClaim(holder=claimant_id, expires_at=now + self.lock_timeout)
            seat_locks_active.set(len(self._claims))

        try:
            seat = await self.seat_store.get(seat_number)
            if seat is None:
                self._drop(seat_number, claimant_id)
                record_reservation("not_found")
                logger.warning("seat_reservation_not_found", seat_number=seat_number, claimant_id=claimant_id)
                return ReservationResult(
                    outcome=ReservationOutcome.NOT_FOUND,
                    seat_number=seat_number,
                    slot=slot,
                    message="Seat not found",
                )

            occupant = seat.occupant_for(slot)
            if occupant and occupant.membership_id != claimant_id:
                self._drop(seat_number, claimant_id)
                return self._conflict(
                    seat_number, slot, claimant_id, occupant.membership_id, "occupied",
                    f"Seat is already occupied in the {slot} slot",
                )

            await self.seat_store.occupy(seat_number, slot, claimant_id, status)
        except SeatUnavailableError as e:
            # an expired claim let a second writer through; the store refused it
            self._drop(seat_number, claimant_id)
            return self._conflict(
                seat_number, slot, claimant_id, e.occupant_id, "occupied",
                f"Seat is already occupied in the {slot} slot",
            )
        except Exception as e:
            self._drop(seat_number, claimant_id)
            record_reservation("error")
            logger.error("seat_reservation_error", seat_number=seat_number, claimant_id=claimant_id, error=str(e))
            raise

        with self._mutex:
            claim = self._claims.get(seat_number)
            if claim and claim.holder == claimant_id:
                claim.expires_at = self._clock() + self.hold

        record_reservation("reserved")
        logger.info("seat_reserved", seat_number=seat_number, slot=slot, claimant_id=claimant_id)
        return ReservationResult(
            outcome=ReservationOutcome.RESERVED,
            seat_number=seat_number,
            slot=slot,
            message="Seat reserved successfully",
        )

    async def release(self, seat_number: int, claimant_id: str) -> bool:
        """
        Vacate the slot the claimant holds on this seat.

        Returns False when the claimant does not occupy the seat. Drops the
        claimant's own claim on the seat number, never another claimant's.
        """
        seat = await self.seat_store.get(seat_number)
        slot = seat.slot_of(claimant_id) if seat else None
        if slot is None:
            logger.info("seat_release_not_owner", seat_number=seat_number, claimant_id=claimant_id)
            return False

        await self.seat_store.vacate(seat_number, slot)
        self._drop(seat_number, claimant_id)

        logger.info("seat_released", seat_number=seat_number, slot=slot, claimant_id=claimant_id)
        return True

    def lock_status(self, seat_number: int) -> LockStatus:
        with self._mutex:
            now = self._clock()
            self._sweep(now)
            claim = self._claims.get(seat_number)
            if claim is None:
                return LockStatus(seat_number=seat_number, locked=False)
            return LockStatus(
                seat_number=seat_number,
                locked=True,
                holder=claim.holder,
                remaining_ms=_milliseconds(claim.expires_at - now),
            )

    def all_locks(self) -> list[LockStatus]:
        with self._mutex:
            now = self._clock()
            self._sweep(now)
            return [
                LockStatus(
                    seat_number=number,
                    locked=True,
                    holder=claim.holder,
                    remaining_ms=_milliseconds(claim.expires_at - now),
                )
                for number, claim in sorted(self._claims.items())
            ]

    # Callers must hold self._mutex
    def _sweep(self, now: datetime) -> None:
        expired = [number for number, claim in self._claims.items() if claim.expires_at <= now]
        for number in expired:
            del self._claims[number]
            logger.debug("seat_claim_expired", seat_number=number)
        if expired:
            seat_locks_active.set(len(self._claims))

    def _drop(self, seat_number: int, claimant_id: str) -> None:
        with self._mutex:
            claim = self._claims.get(seat_number)
            if claim and claim.holder == claimant_id:
                del self._claims[seat_number]
            seat_locks_active.set(len(self._claims))

    def _conflict(
        self,
        seat_number: int,
        slot: str,
        claimant_id: str,
        occupant_id: Optional[str],
        reason: str,
        message: str,
    ) -> ReservationResult:
        record_reservation("conflict")
        logger.info(
            "seat_reservation_conflict",
            seat_number=seat_number,
            slot=slot,
            claimant_id=claimant_id,
            occupant_id=occupant_id,
            reason=reason,
        )
        return ReservationResult(
            outcome=ReservationOutcome.CONFLICT,
            seat_number=seat_number,
            slot=slot,
            occupant_id=occupant_id,
            message=message,
        )


def _milliseconds(delta: timedelta) -> int:
    return max(int(delta.total_seconds() * 1000), 0)
