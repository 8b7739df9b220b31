"""
Billing cycle arithmetic for seat memberships.

CYCLE MODEL
===========

A membership renews in fixed 30-day units anchored at its registration date,
not in calendar months. A payment that lands exactly on a cycle boundary buys
a full cycle; a payment made mid-cycle (late or early) only buys the days left
until the next boundary, so the due date snaps back onto the anchor's cycle
instead of drifting with every late payment.

  anchor 2024-01-01, paid 2024-01-01  -> due 2024-01-31 (full, 30 days)
  anchor 2024-01-01, paid 2024-01-09  -> due 2024-01-31 (partial, 22 days)

Everything here is a pure function of its arguments. Date-only semantics:
datetimes are reduced to their calendar date before any comparison.
"""

from datetime import date, datetime, timedelta
from typing import Iterable, Mapping, Optional

from studyhall.core.exceptions import CycleValidationError
from studyhall.schemas.cycle import DueDateCalculation, FeePeriod, FeeSummary
from studyhall.schemas.enums import CycleKind, FeeStatus
from studyhall.schemas.membership import Membership, Payment

DEFAULT_CYCLE_DAYS = 30
DEFAULT_HISTORY_CYCLES = 12


def as_date(value, field: str = "date") -> date:
    """Strip time-of-day; reject anything that is not a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise CycleValidationError(f"{field} must be a date, got {type(value).__name__}")


class CycleCalculator:
    """Stateless calculator; the instance only carries the cycle constants."""

    def __init__(self, cycle_days: int = DEFAULT_CYCLE_DAYS, history_cycles: int = DEFAULT_HISTORY_CYCLES):
        if cycle_days <= 0:
            raise CycleValidationError("cycle_days must be positive")
        self.cycle_days = cycle_days
        self.history_cycles = history_cycles

    def next_due_date(self, anchor_date, payment_date) -> DueDateCalculation:
        """Due date bought by a payment made on payment_date for a cycle anchored at anchor_date."""
        anchor = as_date(anchor_date, "anchor_date")
        paid_on = as_date(payment_date, "payment_date")
        if paid_on < anchor:
            raise CycleValidationError(
                f"payment_date {paid_on.isoformat()} is before anchor_date {anchor.isoformat()}"
            )

        days_into_cycle = (paid_on - anchor).days % self.cycle_days
        if days_into_cycle == 0:
            return DueDateCalculation(
                due_date=paid_on + timedelta(days=self.cycle_days),
                days_valid_for=self.cycle_days,
                cycle_kind=CycleKind.FULL,
                description="Full cycle",
            )

        remaining = self.cycle_days - days_into_cycle
        return DueDateCalculation(
            due_date=paid_on + timedelta(days=remaining),
            days_valid_for=remaining,
            cycle_kind=CycleKind.PARTIAL,
            description=f"Partial cycle - {remaining} days to complete current cycle",
        )

    def status_for(self, due_date, now) -> FeeStatus:
        due = as_date(due_date, "due_date")
        today = as_date(now, "now")
        if today < due:
            return FeeStatus.PAID
        if today == due:
            return FeeStatus.DUE
        return FeeStatus.EXPIRED

    def days_until_due(self, due_date, now) -> int:
        """Signed day count; negative means overdue."""
        return (as_date(due_date, "due_date") - as_date(now, "now")).days

    def prorated_amount(self, full_amount: int, days_valid_for: int, cycle_days: Optional[int] = None) -> int:
        cycle_days = self.cycle_days if cycle_days is None else cycle_days
        if full_amount < 0:
            raise CycleValidationError("full_amount must not be negative")
        if days_valid_for < 0:
            raise CycleValidationError("days_valid_for must not be negative")
        if cycle_days <= 0:
            raise CycleValidationError("cycle_days must be positive")
        # half-up rounding in integer arithmetic
        return (2 * full_amount * days_valid_for + cycle_days) // (2 * cycle_days)

    def amount_for_payment(self, full_amount: int, calculation: DueDateCalculation) -> int:
        if calculation.cycle_kind == CycleKind.FULL:
            return full_amount
        return self.prorated_amount(full_amount, calculation.days_valid_for)

    def outstanding_amount(self, due_date, amount: int, now) -> int:
        return amount if self.status_for(due_date, now) == FeeStatus.EXPIRED else 0

    def project_history(
        self,
        anchor_date,
        payments: Iterable,
        price_table: Mapping[str, int],
        slot: str,
        now,
    ) -> list[FeePeriod]:
        """
        Simulate up to history_cycles cycles forward from the anchor.

        Payments are consumed in date order; a payment counts toward a cycle
        when it falls at or before that cycle's due date. Periods are labelled
        by the month their cycle starts in.
        """
        anchor = as_date(anchor_date, "anchor_date")
        amount = price_table.get(slot, 0)
        if amount < 0:
            raise CycleValidationError(f"price for slot {slot!r} must not be negative")

        paid_dates = sorted(as_date(_payment_date(p), "payment date") for p in payments)
        history = []
        cycle_start = anchor
        index = 0
        for _ in range(self.history_cycles):
            calculation = self.next_due_date(anchor, cycle_start)
            paid_date = None
            if index < len(paid_dates) and paid_dates[index] <= calculation.due_date:
                paid_date = paid_dates[index]
                index += 1

            history.append(FeePeriod(
                period=cycle_start.strftime("%Y-%m"),
                amount=amount,
                paid_date=paid_date,
                due_date=calculation.due_date,
                status=FeeStatus.PAID if paid_date else self.status_for(calculation.due_date, now),
                days_valid_for=calculation.days_valid_for,
            ))
            cycle_start = calculation.due_date

        return history

    def fee_summary(self, membership: Membership, price_table: Mapping[str, int], now) -> FeeSummary:
        due = membership.due_date
        status = self.status_for(due, now)
        days = self.days_until_due(due, now)
        amount = price_table.get(membership.slot, 0)

        if status == FeeStatus.PAID:
            description = f"Payment up to date. Next due in {days} days."
        elif status == FeeStatus.DUE:
            description = "Payment due today."
        else:
            description = f"Payment overdue by {abs(days)} days."

        return FeeSummary(
            current_status=status,
            next_due_date=due,
            days_until_due=days,
            current_amount=amount,
            outstanding_amount=self.outstanding_amount(due, amount, now),
            description=description,
        )


def _payment_date(payment):
    if isinstance(payment, Payment):
        return payment.paid_on
    return payment

