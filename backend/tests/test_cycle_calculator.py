"""
Tests for billing cycle arithmetic.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from studyhall.core.exceptions import CycleValidationError
from studyhall.schemas.enums import CycleKind, FeeStatus
from studyhall.schemas.membership import Membership, Payment
from studyhall.schemas.settings import DEFAULT_SLOT_PRICING
from studyhall.services.cycle_calculator import CycleCalculator, as_date

ANCHOR = date(2024, 1, 1)


@pytest.fixture
def calc() -> CycleCalculator:
    return CycleCalculator()


def test_payment_on_anchor_buys_full_cycle(calc):
    result = calc.next_due_date(ANCHOR, date(2024, 1, 1))
    assert result.due_date == date(2024, 1, 31)
    assert result.cycle_kind == CycleKind.FULL
    assert result.days_valid_for == 30


def test_late_payment_snaps_back_to_anchor_cycle(calc):
    result = calc.next_due_date(ANCHOR, date(2024, 1, 9))
    assert result.due_date == date(2024, 1, 31)
    assert result.cycle_kind == CycleKind.PARTIAL
    assert result.days_valid_for == 22


@pytest.mark.parametrize("cycles", [1, 2, 5, 12])
def test_boundary_payment_is_always_full(calc, cycles):
    paid_on = ANCHOR + timedelta(days=30 * cycles)
    result = calc.next_due_date(ANCHOR, paid_on)
    assert result.cycle_kind == CycleKind.FULL
    assert result.due_date == paid_on + timedelta(days=30)


def test_mid_cycle_payments_land_on_a_boundary(calc):
    for offset in range(1, 90):
        if offset % 30 == 0:
            continue
        paid_on = ANCHOR + timedelta(days=offset)
        result = calc.next_due_date(ANCHOR, paid_on)
        assert result.days_valid_for == 30 - offset % 30
        assert result.due_date == paid_on + timedelta(days=result.days_valid_for)
        assert (result.due_date - ANCHOR).days % 30 == 0


def test_chained_payments_return_to_full_after_one_partial(calc):
    result = calc.next_due_date(ANCHOR, date(2024, 1, 17))
    assert result.cycle_kind == CycleKind.PARTIAL
    for _ in range(5):
        result = calc.next_due_date(ANCHOR, result.due_date)
        assert result.cycle_kind == CycleKind.FULL


def test_cycle_ignores_month_lengths(calc):
    # 2024 is a leap year; 30 days from Feb 1 is Mar 2
    result = calc.next_due_date(date(2024, 2, 1), date(2024, 2, 1))
    assert result.due_date == date(2024, 3, 2)


def test_datetimes_are_reduced_to_dates(calc):
    anchor = datetime(2024, 1, 1, 23, 59, tzinfo=timezone.utc)
    paid = datetime(2024, 1, 31, 0, 1, tzinfo=timezone.utc)
    result = calc.next_due_date(anchor, paid)
    assert result.cycle_kind == CycleKind.FULL
    assert result.due_date == date(2024, 3, 1)


def test_payment_before_anchor_is_rejected(calc):
    with pytest.raises(CycleValidationError):
        calc.next_due_date(ANCHOR, date(2023, 12, 31))


@pytest.mark.parametrize("bad", ["2024-01-01", None, 20240101])
def test_non_dates_are_rejected(calc, bad):
    with pytest.raises(CycleValidationError):
        calc.next_due_date(bad, ANCHOR)
    with pytest.raises(CycleValidationError):
        as_date(bad)


def test_status_for_is_monotonic_in_now(calc):
    due = date(2024, 2, 1)
    assert calc.status_for(due, date(2024, 1, 31)) == FeeStatus.PAID
    assert calc.status_for(due, datetime(2024, 2, 1, 23, 0)) == FeeStatus.DUE
    assert calc.status_for(due, date(2024, 2, 2)) == FeeStatus.EXPIRED

    ranks = [calc.status_for(due, due + timedelta(days=d)).rank for d in range(-5, 6)]
    assert ranks == sorted(ranks)


def test_days_until_due_is_signed(calc):
    due = date(2024, 2, 1)
    assert calc.days_until_due(due, date(2024, 1, 29)) == 3
    assert calc.days_until_due(due, due) == 0
    assert calc.days_until_due(due, date(2024, 2, 4)) == -3


def test_prorated_amount(calc):
    assert calc.prorated_amount(1000, 30, 30) == 1000
    assert calc.prorated_amount(900, 15, 30) == 450
    assert calc.prorated_amount(1000, 22) == 733
    assert calc.prorated_amount(0, 10) == 0
    # half rounds up
    assert calc.prorated_amount(1, 15, 30) == 1


@pytest.mark.parametrize("args", [(-1, 10, 30), (1000, -1, 30), (1000, 10, 0)])
def test_prorated_amount_rejects_bad_input(calc, args):
    with pytest.raises(CycleValidationError):
        calc.prorated_amount(*args)


def test_cycle_days_must_be_positive():
    with pytest.raises(CycleValidationError):
        CycleCalculator(cycle_days=0)


def test_project_history_matches_payments_to_cycles(calc):
    payments = [
        Payment(membership_id="m1", paid_on=date(2024, 1, 1), amount=1000,
                cycle_kind=CycleKind.FULL, next_due_date=date(2024, 1, 31)),
        Payment(membership_id="m1", paid_on=date(2024, 1, 30), amount=1000,
                cycle_kind=CycleKind.PARTIAL, next_due_date=date(2024, 1, 31)),
    ]
    history = calc.project_history(ANCHOR, payments, DEFAULT_SLOT_PRICING, "Morning", date(2024, 3, 15))

    assert len(history) == 12
    assert [p.due_date for p in history[:3]] == [date(2024, 1, 31), date(2024, 3, 1), date(2024, 3, 31)]
    assert history[0].period == "2024-01"
    assert history[0].paid_date == date(2024, 1, 1)
    assert history[0].status == FeeStatus.PAID
    assert history[1].paid_date == date(2024, 1, 30)
    assert history[2].paid_date is None
    assert history[2].status == FeeStatus.PAID
    assert history[3].status == FeeStatus.PAID
    assert all(p.amount == 1000 for p in history)


def test_project_history_marks_unpaid_past_cycles_expired(calc):
    history = calc.project_history(ANCHOR, [], DEFAULT_SLOT_PRICING, "Evening", date(2024, 3, 1))
    assert history[0].status == FeeStatus.EXPIRED
    assert history[1].status == FeeStatus.DUE
    assert history[2].status == FeeStatus.PAID
    assert history[0].amount == 1500


def test_project_history_is_restartable(calc):
    first = calc.project_history(ANCHOR, [date(2024, 1, 1)], {"Morning": 0}, "Morning", date(2024, 2, 1))
    second = calc.project_history(ANCHOR, [date(2024, 1, 1)], {"Morning": 0}, "Morning", date(2024, 2, 1))
    assert first == second
    assert first[0].amount == 0


def test_fee_summary_reports_outstanding_when_expired(calc):
    membership = Membership(
        id="m1", name="Asha", email="asha@example.com", seat_number=5, slot="Morning",
        registration_date=ANCHOR, next_due_date=date(2024, 1, 31),
    )
    paid = calc.fee_summary(membership, DEFAULT_SLOT_PRICING, date(2024, 1, 20))
    assert paid.current_status == FeeStatus.PAID
    assert paid.days_until_due == 11
    assert paid.outstanding_amount == 0

    overdue = calc.fee_summary(membership, DEFAULT_SLOT_PRICING, date(2024, 2, 2))
    assert overdue.current_status == FeeStatus.EXPIRED
    assert overdue.outstanding_amount == 1000
    assert overdue.description == "Payment overdue by 2 days."
