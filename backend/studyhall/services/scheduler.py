"""
Fee reconciliation scheduler.

Once per tick every active membership is moved along
paid -> due -> expired -> terminated, driven by its day offset from the
current due date:

  offset == +3, status != expired   -> reminder notice
  offset ==  0, status == due       -> due notice
  offset == -3, status == expired   -> terminate, release the seat, overdue notice

With catch_up_missed the exact offsets widen to ranges (0 < d <= 3,
-3 < d <= 0, d <= -3) so a tick missed while the process was down is
recovered on the next one. Either way each notice is sent at most once per
due date: the membership records the due date it was last notified for.

Timers: a daily tick at a fixed local time plus a backup tick every few
hours. Ticks never overlap; a trigger that finds a tick in flight is skipped.
"""

import asyncio
import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

import structlog

from studyhall.core.config import Settings
from studyhall.core.exceptions import StoreUnavailableError
from studyhall.core.logging import get_logger
from studyhall.core.metrics import record_tick, record_transition, scheduler_tick_duration
from studyhall.schemas.enums import FeeStatus, NotificationCategory, SeatStatus
from studyhall.schemas.membership import Membership
from studyhall.schemas.scheduler import SchedulerStatus, TickReport
from studyhall.schemas.settings import FacilitySettings
from studyhall.services.cycle_calculator import CycleCalculator
from studyhall.services.interfaces.notifier import Notifier
from studyhall.services.interfaces.stores import MembershipStore, SeatStore, SettingsStore
from studyhall.services.notifications import dispatch, format_display_date, membership_template_data
from studyhall.services.seat_coordinator import Clock, SeatCoordinator, utc_now

logger = get_logger(__name__)

REMINDER = "reminder"
DUE_TODAY = "due_today"
TERMINATE = "terminate"


class ReconciliationScheduler:

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
        daily_time: time = time(9, 0),
        backup_interval_hours: float = 6,
        reminder_days: int = 3,
        termination_days: int = 3,
        catch_up_missed: bool = True,
        run_on_start: bool = True,
    ):
        self.membership_store = membership_store
        self.seat_store = seat_store
        self.settings_store = settings_store
        self.seat_coordinator = seat_coordinator
        self.notifier = notifier
        self.calculator = calculator or CycleCalculator()
        self.tz = tz
        self.daily_time = daily_time
        self.backup_interval = timedelta(hours=backup_interval_hours)
        self.reminder_days = reminder_days
        self.termination_days = termination_days
        self.catch_up_missed = catch_up_missed
        self.run_on_start = run_on_start

        self._clock = clock
        self._tick_lock = asyncio.Lock()
        self._tasks: list[asyncio.Task] = []
        self._inflight: set[asyncio.Task] = set()
        self.running = False
        self.last_tick_at: Optional[datetime] = None
        self.last_report: Optional[TickReport] = None
        self._next_daily: Optional[datetime] = None
        self._next_backup: Optional[datetime] = None

    @classmethod
    def from_settings(cls, settings: Settings, **collaborators) -> "ReconciliationScheduler":
        collaborators.setdefault("calculator", CycleCalculator(settings.CYCLE_DAYS, settings.HISTORY_CYCLES))
        return cls(
            tz=settings.tz,
            daily_time=settings.SCHEDULER_DAILY_TIME,
            backup_interval_hours=settings.SCHEDULER_BACKUP_INTERVAL_HOURS,
            reminder_days=settings.REMINDER_DAYS_BEFORE,
            termination_days=settings.TERMINATION_DAYS_AFTER,
            catch_up_missed=settings.SCHEDULER_CATCH_UP_MISSED,
            run_on_start=settings.SCHEDULER_RUN_ON_START,
            **collaborators,
        )

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        if self.running:
            logger.warning("scheduler_already_running")
            return

        self.running = True
        self._tasks = [
            asyncio.create_task(self._daily_loop(), name="reconciliation-daily"),
            asyncio.create_task(self._backup_loop(), name="reconciliation-backup"),
        ]
        logger.info(
            "scheduler_started",
            daily_time=self.daily_time.isoformat(),
            timezone=str(self.tz),
            backup_interval_hours=self.backup_interval.total_seconds() / 3600,
        )

    async def stop(self) -> None:
        """Cancel the timers. A tick already in flight runs to completion first."""
        if not self.running:
            return

        self.running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        self._next_daily = None
        self._next_backup = None

        for tick in list(self._inflight):
            logger.info("scheduler_stop_waiting_for_tick")
            try:
                await tick
            except Exception as e:
                logger.error("scheduler_tick_crashed", error=str(e), exc_info=True)
        if self._tick_lock.locked():
            logger.info("scheduler_stop_waiting_for_tick")
            async with self._tick_lock:
                pass
        logger.info("scheduler_stopped")

    async def trigger_now(self, trigger: str = "manual") -> Optional[TickReport]:
        """Run one tick. Returns None when another tick is already active."""
        if self._tick_lock.locked():
            logger.info("scheduler_tick_skipped", trigger=trigger, reason="tick_in_progress")
            record_tick("skipped")
            return None

        async with self._tick_lock:
            return await self._tick(trigger)

    def status(self) -> SchedulerStatus:
        upcoming = [t for t in (self._next_daily, self._next_backup) if t is not None]
        return SchedulerStatus(
            running=self.running,
            active=self._tick_lock.locked(),
            last_tick_at=self.last_tick_at,
            next_tick_at=min(upcoming) if upcoming else None,
            daily_time=self.daily_time,
            backup_interval_hours=self.backup_interval.total_seconds() / 3600,
            last_report=self.last_report,
        )

    def next_daily_run(self, now: datetime) -> datetime:
        local = now.astimezone(self.tz)
        candidate = datetime.combine(local.date(), self.daily_time, tzinfo=self.tz)
        if candidate <= local:
            candidate += timedelta(days=1)
        return candidate.astimezone(timezone.utc)

    async def _daily_loop(self) -> None:
        if self.run_on_start:
            await self._run_guarded("startup")
        while self.running:
            self._next_daily = self.next_daily_run(self._clock())
            await asyncio.sleep(max((self._next_daily - self._clock()).total_seconds(), 0))
            await self._run_guarded("daily")

    async def _backup_loop(self) -> None:
        while self.running:
            self._next_backup = self._clock() + self.backup_interval
            await asyncio.sleep(self.backup_interval.total_seconds())
            await self._run_guarded("backup")

    async def _run_guarded(self, trigger: str) -> None:
        # stop() cancels the timer task, then awaits the tick it started
        tick = asyncio.ensure_future(self.trigger_now(trigger))
        self._inflight.add(tick)
        tick.add_done_callback(self._inflight.discard)
        try:
            await asyncio.shield(tick)
        except Exception as e:
            # keep the timer alive; the next tick starts from a fresh load
            logger.error("scheduler_tick_crashed", trigger=trigger, error=str(e), exc_info=True)

    # -- tick ----------------------------------------------------------------

    async def _tick(self, trigger: str) -> TickReport:
        started_at = self._clock()
        report = TickReport(tick_id=uuid.uuid4().hex[:8], started_at=started_at)
        today = started_at.astimezone(self.tz).date()
        self.last_tick_at = started_at
        structlog.contextvars.bind_contextvars(tick_id=report.tick_id)

        try:
            with scheduler_tick_duration.time():
                await self._reconcile(report, today, trigger)
        finally:
            report.finished_at = self._clock()
            self.last_report = report
            structlog.contextvars.unbind_contextvars("tick_id")

        record_tick("aborted" if report.aborted else "completed")
        return report

    async def _reconcile(self, report: TickReport, today: date, trigger: str) -> None:
        logger.info("scheduler_tick_started", trigger=trigger, today=today.isoformat())

        try:
            memberships = await self.membership_store.list_all()
            facility = await self.settings_store.get()
        except StoreUnavailableError as e:
            report.aborted = True
            logger.error("scheduler_tick_aborted", reason="store_unavailable", error=str(e))
            return

        notify = self.notifier.is_configured()
        if not notify:
            report.notifications_skipped = True
            logger.warning("scheduler_notifications_disabled", reason="notifier_not_configured")

        buckets: dict[str, list[Membership]] = {REMINDER: [], DUE_TODAY: [], TERMINATE: []}
        for membership in memberships:
            if not membership.is_active:
                continue
            report.memberships_checked += 1
            try:
                membership = await self._advance_status(membership, today, report)
            except Exception as e:
                self._record_failure(report, membership, "advance_status", e)
                continue
            bucket = self.classify(membership, today)
            if bucket:
                buckets[bucket].append(membership)

        logger.info(
            "scheduler_buckets",
            reminders=len(buckets[REMINDER]),
            due_today=len(buckets[DUE_TODAY]),
            terminations=len(buckets[TERMINATE]),
        )

        terminated = []
        for membership in buckets[TERMINATE]:
            try:
                if await self._terminate(membership, facility, notify):
                    terminated.append(membership)
                    report.terminations += 1
            except Exception as e:
                self._record_failure(report, membership, "terminate", e)

        if notify:
            for membership in buckets[REMINDER]:
                try:
                    if await self._send_notice(membership, facility, today, NotificationCategory.REMINDER):
                        report.reminders_sent += 1
                except Exception as e:
                    self._record_failure(report, membership, "reminder", e)

            for membership in buckets[DUE_TODAY]:
                try:
                    if await self._send_notice(membership, facility, today, NotificationCategory.DUE):
                        report.due_notices_sent += 1
                except Exception as e:
                    self._record_failure(report, membership, "due_notice", e)

            if terminated:
                await dispatch(
                    self.notifier,
                    NotificationCategory.ADMIN,
                    facility.template_for(NotificationCategory.ADMIN),
                    {
                        "date": format_display_date(today),
                        "count": len(terminated),
                        "seats": ", ".join(str(m.seat_number) for m in terminated),
                    },
                )

        logger.info(
            "scheduler_tick_completed",
            checked=report.memberships_checked,
            status_updates=report.status_updates,
            reminders=report.reminders_sent,
            due_notices=report.due_notices_sent,
            terminations=report.terminations,
            failures=len(report.failures),
        )

    def classify(self, membership: Membership, today: date) -> Optional[str]:
        """Bucket for a membership on a given day, or None."""
        days = self.calculator.days_until_due(membership.due_date, today)
        status = membership.fee_status
        if self.catch_up_missed:
            in_reminder = 0 < days <= self.reminder_days
            in_due = -self.termination_days < days <= 0
            in_termination = days <= -self.termination_days
        else:
            in_reminder = days == self.reminder_days
            in_due = days == 0
            in_termination = days == -self.termination_days

        if in_termination and status == FeeStatus.EXPIRED:
            return TERMINATE
        if in_reminder and status != FeeStatus.EXPIRED and membership.reminder_sent_for != membership.due_date:
            return REMINDER
        due_status_ok = status != FeeStatus.PAID if self.catch_up_missed else status == FeeStatus.DUE
        if in_due and due_status_ok and membership.due_notice_sent_for != membership.due_date:
            return DUE_TODAY
        return None

    async def _advance_status(self, membership: Membership, today: date, report: TickReport) -> Membership:
        """Move the tracked fee status forward to what the due date implies. Never backwards."""
        computed = self.calculator.status_for(membership.due_date, today)
        if computed.rank <= membership.fee_status.rank:
            return membership

        previous = membership.fee_status
        updated = await self.membership_store.update(membership.id, {"fee_status": computed})
        await self.seat_store.set_status(membership.seat_number, membership.slot, SeatStatus.mirror(computed))
        report.status_updates += 1
        record_transition(f"{previous.value}_to_{computed.value}")
        logger.info(
            "membership_status_advanced",
            membership_id=membership.id,
            from_status=previous.value,
            to_status=computed.value,
        )
        return updated or membership.model_copy(update={"fee_status": computed})

    async def _terminate(self, membership: Membership, facility: FacilitySettings, notify: bool) -> bool:
        current = await self.membership_store.get(membership.id)
        if current is None or not current.is_active:
            return False

        await self.membership_store.update(membership.id, {"fee_status": FeeStatus.EXPIRED})
        released = await self.seat_coordinator.release(membership.seat_number, membership.id)
        if not released:
            logger.warning(
                "termination_seat_not_held",
                membership_id=membership.id,
                seat_number=membership.seat_number,
            )
        await self.membership_store.update(membership.id, {"left_at": self._clock()})
        await self.membership_store.add_log(
            membership.id, f"Membership terminated for non-payment - seat {membership.seat_number} released"
        )
        record_transition("terminated")
        logger.info("membership_terminated", membership_id=membership.id, seat_number=membership.seat_number)

        if notify:
            await dispatch(
                self.notifier,
                NotificationCategory.OVERDUE,
                facility.template_for(NotificationCategory.OVERDUE),
                membership_template_data(membership, amount=facility.price_for(membership.slot)),
                recipient=membership.email,
                membership_id=membership.id,
            )
        return True

    async def _send_notice(
        self,
        membership: Membership,
        facility: FacilitySettings,
        today: date,
        category: NotificationCategory,
    ) -> bool:
        data = membership_template_data(
            membership,
            amount=facility.price_for(membership.slot),
            daysUntilDue=self.calculator.days_until_due(membership.due_date, today),
        )
        sent = await dispatch(
            self.notifier,
            category,
            facility.template_for(category),
            data,
            recipient=membership.email,
            membership_id=membership.id,
        )
        if not sent:
            return False

        marker = "reminder_sent_for" if category == NotificationCategory.REMINDER else "due_notice_sent_for"
        await self.membership_store.update(membership.id, {marker: membership.due_date})
        await self.membership_store.add_log(membership.id, f"{category.value.capitalize()} notice sent")
        return True

    def _record_failure(self, report: TickReport, membership: Membership, step: str, error: Exception) -> None:
        report.failures.append(f"{membership.id}: {step}: {error}")
        logger.error("scheduler_membership_failed", membership_id=membership.id, step=step, error=str(error))
