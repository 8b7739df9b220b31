"""
Membership lifecycle: registration, payments, seat changes, leaving and
reactivation. Every seat assignment goes through SeatCoordinator.
"""

import uuid
from datetime import date
from typing import Optional
from zoneinfo import ZoneInfo

from studyhall.core.exceptions import (
    InvalidSlotError,
    MembershipNotFoundError,
    MembershipStateError,
    SeatNotFoundError,
    SeatUnavailableError,
)
from studyhall.core.logging import get_logger
from studyhall.core.metrics import record_payment
from studyhall.schemas.cycle import FeePeriod, FeeSummary
from studyhall.schemas.enums import FeeStatus, NotificationCategory, SeatStatus
from studyhall.schemas.membership import Membership, MembershipCreate, Payment, PaymentReceipt
from studyhall.schemas.seat import ReservationOutcome, ReservationResult
from studyhall.services.cycle_calculator import CycleCalculator
from studyhall.services.interfaces.notifier import Notifier
from studyhall.services.interfaces.stores import MembershipStore, SeatStore, SettingsStore
from studyhall.services.notifications import dispatch, membership_template_data
from studyhall.services.seat_coordinator import Clock, SeatCoordinator, utc_now

logger = get_logger(__name__)


class MembershipService:

    def __init__(
        self,
        membership_store: MembershipStore,
        seat_store: SeatStore,
        settings_store: SettingsStore,
        seat_coordinator: SeatCoordinator,
        notifier: Notifier,
        calculator: Optional[CycleCalculator] = None,
        clock: Clock = utc_now,
        tz: ZoneInfo = ZoneInfo("UTC"),
    ):
        self.membership_store = membership_store
        self.seat_store = seat_store
        self.settings_store = settings_store
        self.seat_coordinator = seat_coordinator
        self.notifier = notifier
        self.calculator = calculator or CycleCalculator()
        self._clock = clock
        self.tz = tz

    def today(self) -> date:
        return self._clock().astimezone(self.tz).date()

    async def get(self, membership_id: str) -> Membership:
        membership = await self.membership_store.get(membership_id)
        if membership is None:
            raise MembershipNotFoundError(membership_id)
        return membership

    async def register(self, data: MembershipCreate, today: Optional[date] = None, actor: str = "admin") -> Membership:
        """
        Create a membership holding seat_number in slot.

        The seat is claimed before the membership is written; if the write
        fails the seat is released again.
        """
        today = today or self.today()
        facility = await self.settings_store.get()
        if data.slot not in facility.slot_pricing:
            raise InvalidSlotError(data.slot)

        membership_id = uuid.uuid4().hex
        self._raise_for_reservation(
            await self.seat_coordinator.reserve(data.seat_number, membership_id, data.slot)
        )

        membership = Membership(
            id=membership_id,
            **data.model_dump(),
            fee_status=FeeStatus.DUE,
            registration_date=today,
            next_due_date=today,
        )
        try:
            created = await self.membership_store.create(membership)
        except Exception:
            await self.seat_coordinator.release(data.seat_number, membership_id)
            raise

        await self.membership_store.add_log(
            membership_id, f"Registered - seat {data.seat_number} ({data.slot})", actor
        )
        logger.info(
            "membership_registered",
            membership_id=membership_id,
            seat_number=data.seat_number,
            slot=data.slot,
        )
        return created

    async def record_payment(
        self,
        membership_id: str,
        paid_on: Optional[date] = None,
        actor: str = "admin",
    ) -> PaymentReceipt:
        """
        Record a fee payment and advance the due date.

        A payment made while the current cycle is still running is applied
        from the current due date, so paying early buys a full next cycle.
        A late payment snaps back onto the registration anchor.
        """
        membership = await self.get(membership_id)
        if not membership.is_active:
            raise MembershipStateError(f"Membership {membership_id} has left; reactivate it first")

        paid_on = paid_on or self.today()
        facility = await self.settings_store.get()
        effective = max(paid_on, membership.due_date)
        calculation = self.calculator.next_due_date(membership.registration_date, effective)
        amount = self.calculator.amount_for_payment(facility.price_for(membership.slot), calculation)

        updated = await self.membership_store.update(membership_id, {
            "fee_status": FeeStatus.PAID,
            "next_due_date": calculation.due_date,
            "last_payment_date": paid_on,
            "reminder_sent_for": None,
            "due_notice_sent_for": None,
        })
        await self.seat_store.set_status(membership.seat_number, membership.slot, SeatStatus.PAID)
        payment = await self.membership_store.add_payment(Payment(
            membership_id=membership_id,
            paid_on=paid_on,
            amount=amount,
            cycle_kind=calculation.cycle_kind,
            next_due_date=calculation.due_date,
        ))
        await self.membership_store.add_log(
            membership_id,
            f"Payment of {amount} recorded - valid until {calculation.due_date.isoformat()}",
            actor,
        )
        record_payment(calculation.cycle_kind.value)
        logger.info(
            "payment_recorded",
            membership_id=membership_id,
            amount=amount,
            cycle=calculation.cycle_kind.value,
            next_due_date=calculation.due_date.isoformat(),
        )

        if self.notifier.is_configured():
            await dispatch(
                self.notifier,
                NotificationCategory.PAYMENT,
                facility.template_for(NotificationCategory.PAYMENT),
                membership_template_data(updated, amount=amount),
                recipient=updated.email,
                membership_id=membership_id,
            )
        return PaymentReceipt(membership=updated, payment=payment)

    async def change_seat(self, membership_id: str, seat_number: int, actor: str = "admin") -> Membership:
        membership = await self.get(membership_id)
        if not membership.is_active:
            raise MembershipStateError(f"Membership {membership_id} has left")
        if seat_number == membership.seat_number:
            return membership

        self._raise_for_reservation(await self.seat_coordinator.reserve(
            seat_number, membership_id, membership.slot, status=SeatStatus.mirror(membership.fee_status)
        ))
        await self.seat_coordinator.release(membership.seat_number, membership_id)
        updated = await self.membership_store.update(membership_id, {"seat_number": seat_number})
        await self.membership_store.add_log(
            membership_id, f"Seat changed from {membership.seat_number} to {seat_number}", actor
        )
        logger.info("membership_seat_changed", membership_id=membership_id, old=membership.seat_number, new=seat_number)
        return updated

    async def mark_left(self, membership_id: str, actor: str = "admin") -> Membership:
        """Archive a membership and free its seat. Already-left memberships are returned unchanged."""
        membership = await self.get(membership_id)
        if not membership.is_active:
            return membership

        await self.seat_coordinator.release(membership.seat_number, membership_id)
        updated = await self.membership_store.update(membership_id, {"left_at": self._clock()})
        await self.membership_store.add_log(
            membership_id, f"Marked as left - seat {membership.seat_number} freed", actor
        )
        logger.info("membership_left", membership_id=membership_id, seat_number=membership.seat_number)
        return updated

    async def reactivate(
        self,
        membership_id: str,
        seat_number: int,
        today: Optional[date] = None,
        actor: str = "admin",
    ) -> Membership:
        """Bring a member back on a new cycle anchored today."""
        membership = await self.get(membership_id)
        if membership.is_active:
            raise MembershipStateError(f"Membership {membership_id} is already active")

        today = today or self.today()
        self._raise_for_reservation(
            await self.seat_coordinator.reserve(seat_number, membership_id, membership.slot)
        )
        updated = await self.membership_store.update(membership_id, {
            "seat_number": seat_number,
            "fee_status": FeeStatus.DUE,
            "registration_date": today,
            "next_due_date": today,
            "last_payment_date": None,
            "reminder_sent_for": None,
            "due_notice_sent_for": None,
            "left_at": None,
        })
        await self.membership_store.add_log(membership_id, f"Reactivated on seat {seat_number}", actor)
        logger.info("membership_reactivated", membership_id=membership_id, seat_number=seat_number)
        return updated

    async def delete(self, membership_id: str, actor: str = "admin") -> None:
        membership = await self.get(membership_id)
        if membership.is_active:
            await self.seat_coordinator.release(membership.seat_number, membership_id)
        await self.membership_store.delete(membership_id)
        logger.info("membership_deleted", membership_id=membership_id, actor=actor)

    async def fee_summary(self, membership_id: str, today: Optional[date] = None) -> FeeSummary:
        membership = await self.get(membership_id)
        facility = await self.settings_store.get()
        return self.calculator.fee_summary(membership, facility.slot_pricing, today or self.today())

    async def fee_history(self, membership_id: str, today: Optional[date] = None) -> list[FeePeriod]:
        membership = await self.get(membership_id)
        facility = await self.settings_store.get()
        payments = await self.membership_store.list_payments(membership_id)
        return self.calculator.project_history(
            membership.registration_date,
            payments,
            facility.slot_pricing,
            membership.slot,
            today or self.today(),
        )

    @staticmethod
    def _raise_for_reservation(result: ReservationResult) -> None:
        if result.outcome == ReservationOutcome.NOT_FOUND:
            raise SeatNotFoundError(result.seat_number)
        if not result.ok:
            raise SeatUnavailableError(result.seat_number, result.slot, result.occupant_id)
