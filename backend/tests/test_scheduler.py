"""
Tests for the reconciliation scheduler: bucket classification, idempotent
ticks, termination and failure handling.
"""

import asyncio
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from studyhall.schemas.enums import FeeStatus, NotificationCategory, SeatStatus
from studyhall.schemas.membership import Membership
from studyhall.services.scheduler import DUE_TODAY, REMINDER, TERMINATE, ReconciliationScheduler
from fakes import RecordingNotifier


@pytest.mark.asyncio
async def test_reminder_three_days_before_due(scheduler, seated_member, notifier, clock, membership_store):
    await seated_member(due=date(2024, 2, 1))
    clock.set_day(date(2024, 1, 29))

    report = await scheduler.trigger_now()

    assert report.reminders_sent == 1
    assert notifier.categories() == [NotificationCategory.REMINDER]
    category, message, recipient = notifier.sent[0]
    assert recipient == "m1@example.com"
    assert "seat 5 (Morning slot)" in message
    assert "01/02/2024" in message
    assert "(3 days)" in message

    stored = await membership_store.get("m1")
    assert stored.reminder_sent_for == date(2024, 2, 1)


@pytest.mark.asyncio
async def test_repeated_ticks_send_no_duplicate_reminder(scheduler, seated_member, notifier, clock):
    await seated_member(due=date(2024, 2, 1))
    clock.set_day(date(2024, 1, 29))

    first = await scheduler.trigger_now()
    second = await scheduler.trigger_now("backup")
    clock.advance(hours=6)
    third = await scheduler.trigger_now("backup")

    assert first.reminders_sent == 1
    assert second.reminders_sent == 0
    assert third.reminders_sent == 0
    assert notifier.categories() == [NotificationCategory.REMINDER]


@pytest.mark.asyncio
async def test_due_day_advances_status_and_sends_due_notice(
    scheduler, seated_member, notifier, clock, membership_store, seat_store
):
    await seated_member(due=date(2024, 2, 1))
    clock.set_day(date(2024, 2, 1))

    report = await scheduler.trigger_now()

    assert report.status_updates == 1
    assert report.due_notices_sent == 1
    assert (await membership_store.get("m1")).fee_status == FeeStatus.DUE
    assert (await seat_store.get(5)).occupant_for("Morning").status == SeatStatus.DUE
    assert notifier.categories() == [NotificationCategory.DUE]

    again = await scheduler.trigger_now()
    assert again.status_updates == 0
    assert again.due_notices_sent == 0


@pytest.mark.asyncio
async def test_termination_three_days_after_due(
    scheduler, seated_member, notifier, clock, membership_store, seat_store
):
    await seated_member(due=date(2024, 2, 1), status=FeeStatus.EXPIRED)
    clock.set_day(date(2024, 2, 4))

    report = await scheduler.trigger_now()

    assert report.terminations == 1
    stored = await membership_store.get("m1")
    assert stored.fee_status == FeeStatus.EXPIRED
    assert stored.left_at == clock()
    assert (await seat_store.get(5)).status == SeatStatus.AVAILABLE
    assert notifier.categories() == [NotificationCategory.OVERDUE, NotificationCategory.ADMIN]
    assert "seats released: 5" in notifier.sent[1][1]
    assert any("terminated" in entry["action"] for entry in membership_store.logs)


@pytest.mark.asyncio
async def test_double_trigger_terminates_once(scheduler, seated_member, notifier, clock, seat_store):
    await seated_member(due=date(2024, 2, 1), status=FeeStatus.EXPIRED)
    clock.set_day(date(2024, 2, 4))

    first = await scheduler.trigger_now()
    second = await scheduler.trigger_now()

    assert first.terminations == 1
    assert second.terminations == 0
    assert second.memberships_checked == 0
    assert notifier.categories().count(NotificationCategory.OVERDUE) == 1


@pytest.mark.asyncio
async def test_paid_member_past_grace_is_advanced_then_terminated(scheduler, seated_member, clock, seat_store):
    """A membership never seen as due (scheduler was down) still expires and is reclaimed."""
    await seated_member(due=date(2024, 2, 1), status=FeeStatus.PAID)
    clock.set_day(date(2024, 2, 6))

    report = await scheduler.trigger_now()

    assert report.status_updates == 1
    assert report.terminations == 1
    assert (await seat_store.get(5)).status == SeatStatus.AVAILABLE


@pytest.mark.asyncio
async def test_unconfigured_notifier_still_reclaims_seats(
    membership_store, seat_store, settings_store, coordinator, clock, seated_member
):
    silent = RecordingNotifier(configured=False)
    scheduler = ReconciliationScheduler(
        membership_store, seat_store, settings_store, coordinator, silent,
        clock=clock, tz=ZoneInfo("UTC"), run_on_start=False,
    )
    await seated_member("m1", seat_number=5, due=date(2024, 2, 1), status=FeeStatus.EXPIRED)
    await seated_member("m2", seat_number=6, due=date(2024, 2, 7))
    clock.set_day(date(2024, 2, 4))

    report = await scheduler.trigger_now()

    assert report.notifications_skipped is True
    assert report.terminations == 1
    assert report.reminders_sent == 0
    assert silent.sent == []
    assert (await seat_store.get(5)).status == SeatStatus.AVAILABLE
    # marker stays unset so the reminder goes out once the notifier is configured
    assert (await membership_store.get("m2")).reminder_sent_for is None


@pytest.mark.asyncio
async def test_store_unavailable_aborts_tick(scheduler, seated_member, membership_store, notifier, clock):
    await seated_member(due=date(2024, 2, 1))
    clock.set_day(date(2024, 1, 29))
    membership_store.available = False

    report = await scheduler.trigger_now()

    assert report.aborted is True
    assert report.memberships_checked == 0
    assert notifier.sent == []
    assert scheduler.status().last_report == report

    membership_store.available = True
    retry = await scheduler.trigger_now()
    assert retry.reminders_sent == 1


@pytest.mark.asyncio
async def test_one_failed_notice_does_not_block_others(
    membership_store, seat_store, settings_store, coordinator, clock, seated_member
):
    flaky = RecordingNotifier(fail_for={"m1@example.com"})
    scheduler = ReconciliationScheduler(
        membership_store, seat_store, settings_store, coordinator, flaky,
        clock=clock, tz=ZoneInfo("UTC"), run_on_start=False,
    )
    await seated_member("m1", seat_number=5, due=date(2024, 2, 1))
    await seated_member("m2", seat_number=6, due=date(2024, 2, 1))
    clock.set_day(date(2024, 1, 29))

    report = await scheduler.trigger_now()

    assert report.reminders_sent == 1
    assert [recipient for _, _, recipient in flaky.sent] == ["m2@example.com"]
    assert (await membership_store.get("m1")).reminder_sent_for is None

    flaky.fail_for.clear()
    retry = await scheduler.trigger_now()
    assert retry.reminders_sent == 1


@pytest.mark.asyncio
async def test_per_membership_store_failure_is_recorded(scheduler, seated_member, seat_store, clock):
    await seated_member("m1", seat_number=5, due=date(2024, 2, 1))
    clock.set_day(date(2024, 2, 1))
    seat_store.available = False

    report = await scheduler.trigger_now()

    assert not report.aborted
    assert report.memberships_checked == 1
    assert len(report.failures) == 1
    assert report.failures[0].startswith("m1: advance_status")


@pytest.mark.asyncio
async def test_members_who_left_are_skipped(scheduler, seated_member, membership_store, notifier, clock):
    await seated_member(due=date(2024, 2, 1))
    await membership_store.update("m1", {"left_at": clock()})
    clock.set_day(date(2024, 1, 29))

    report = await scheduler.trigger_now()

    assert report.memberships_checked == 0
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_overlapping_trigger_is_skipped(scheduler, seated_member, clock):
    await seated_member(due=date(2024, 2, 1))
    clock.set_day(date(2024, 1, 29))

    first, second = await asyncio.gather(scheduler.trigger_now(), scheduler.trigger_now())

    assert first is not None
    assert second is None
    assert first.reminders_sent == 1


DUE = date(2024, 2, 1)


def _member(days_before_due: int, status: FeeStatus, **markers) -> tuple[Membership, date]:
    membership = Membership(
        id="m1", name="Asha", email="a@example.com", seat_number=5, slot="Morning",
        fee_status=status, registration_date=date(2024, 1, 2), next_due_date=DUE, **markers,
    )
    return membership, DUE - timedelta(days=days_before_due)


@pytest.mark.parametrize("days, status, bucket", [
    (4, FeeStatus.PAID, None),
    (3, FeeStatus.PAID, REMINDER),
    (1, FeeStatus.PAID, REMINDER),
    (0, FeeStatus.DUE, DUE_TODAY),
    (-2, FeeStatus.EXPIRED, DUE_TODAY),
    (-3, FeeStatus.EXPIRED, TERMINATE),
    (-10, FeeStatus.EXPIRED, TERMINATE),
])
def test_classify_with_catch_up(scheduler, days, status, bucket):
    membership, today = _member(days, status)
    assert scheduler.classify(membership, today) == bucket


@pytest.mark.parametrize("days, status, bucket", [
    (3, FeeStatus.PAID, REMINDER),
    (2, FeeStatus.PAID, None),
    (0, FeeStatus.DUE, DUE_TODAY),
    (-1, FeeStatus.EXPIRED, None),
    (-3, FeeStatus.EXPIRED, TERMINATE),
    (-4, FeeStatus.EXPIRED, None),
])
def test_classify_exact_offsets(scheduler, days, status, bucket):
    scheduler.catch_up_missed = False
    membership, today = _member(days, status)
    assert scheduler.classify(membership, today) == bucket


def test_classify_respects_sent_markers(scheduler):
    membership, today = _member(3, FeeStatus.PAID, reminder_sent_for=DUE)
    assert scheduler.classify(membership, today) is None

    membership, today = _member(0, FeeStatus.DUE, due_notice_sent_for=DUE)
    assert scheduler.classify(membership, today) is None

    # a marker from an earlier cycle does not suppress the new one
    membership, today = _member(3, FeeStatus.PAID, reminder_sent_for=date(2024, 1, 2))
    assert scheduler.classify(membership, today) == REMINDER


def test_next_daily_run_uses_local_time(scheduler):
    scheduler.tz = ZoneInfo("Asia/Kolkata")
    scheduler.daily_time = time(9, 0)

    before = datetime(2024, 1, 29, 2, 0, tzinfo=timezone.utc)  # 07:30 IST
    after = datetime(2024, 1, 29, 4, 0, tzinfo=timezone.utc)  # 09:30 IST

    assert scheduler.next_daily_run(before) == datetime(2024, 1, 29, 3, 30, tzinfo=timezone.utc)
    assert scheduler.next_daily_run(after) == datetime(2024, 1, 30, 3, 30, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_status_before_and_after_tick(scheduler, clock):
    status = scheduler.status()
    assert status.running is False
    assert status.active is False
    assert status.last_tick_at is None
    assert status.next_tick_at is None

    await scheduler.trigger_now()
    status = scheduler.status()
    assert status.last_tick_at == clock()
    assert status.last_report.memberships_checked == 0


@pytest.mark.asyncio
async def test_start_runs_startup_tick_and_stop_cancels_timers(scheduler, seated_member, clock):
    await seated_member(due=date(2024, 2, 1))
    clock.set_day(date(2024, 1, 29), hour=6)
    scheduler.run_on_start = True

    await scheduler.start()
    for _ in range(200):
        if scheduler.last_report is not None and scheduler.status().next_tick_at is not None:
            break
        await asyncio.sleep(0)

    status = scheduler.status()
    assert status.running is True
    assert scheduler.last_report.reminders_sent == 1
    assert status.next_tick_at == datetime(2024, 1, 29, 9, 0, tzinfo=timezone.utc)

    await scheduler.stop()
    status = scheduler.status()
    assert status.running is False
    assert status.next_tick_at is None


@pytest.mark.asyncio
async def test_stop_right_after_start_lets_startup_tick_finish(scheduler, seated_member, clock):
    await seated_member(due=date(2024, 2, 1))
    clock.set_day(date(2024, 1, 29), hour=6)
    scheduler.run_on_start = True

    await scheduler.start()
    # the daily timer has handed the startup tick off but it has not run yet
    await asyncio.sleep(0)
    await scheduler.stop()

    assert scheduler.last_report is not None
    assert scheduler.last_report.reminders_sent == 1
    assert scheduler.status().active is False


@pytest.mark.asyncio
async def test_stop_waits_for_tick_in_flight(scheduler, seated_member, membership_store, clock, monkeypatch):
    await seated_member(due=date(2024, 2, 1))
    clock.set_day(date(2024, 1, 29), hour=6)
    scheduler.run_on_start = True

    gate = asyncio.Event()
    original_list_all = membership_store.list_all

    async def stalled_list_all():
        await gate.wait()
        return await original_list_all()

    monkeypatch.setattr(membership_store, "list_all", stalled_list_all)
    await scheduler.start()
    for _ in range(50):
        if scheduler.status().active:
            break
        await asyncio.sleep(0)
    assert scheduler.status().active is True

    stopping = asyncio.create_task(scheduler.stop())
    for _ in range(10):
        await asyncio.sleep(0)
    assert not stopping.done()

    gate.set()
    await stopping
    assert scheduler.last_report.reminders_sent == 1
    assert scheduler.status().running is False
