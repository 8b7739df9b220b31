"""
Wires stores, notifier, seat coordinator, scheduler and membership service
into one object owned by the application. Tests build it with in-memory
stores and a fake clock.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from studyhall.core.config import Settings
from studyhall.core.logging import get_logger
from studyhall.db.session import build_engine, build_sessionmaker
from studyhall.services.cycle_calculator import CycleCalculator
from studyhall.services.interfaces.notifier import Notifier
from studyhall.services.interfaces.stores import MembershipStore, SeatStore, SettingsStore
from studyhall.services.membership_service import MembershipService
from studyhall.services.notifications import build_notifier
from studyhall.services.scheduler import ReconciliationScheduler
from studyhall.services.seat_coordinator import Clock, SeatCoordinator, utc_now
from studyhall.services.stores.memory import InMemoryMembershipStore, InMemorySeatStore, InMemorySettingsStore
from studyhall.services.stores.sql import SqlMembershipStore, SqlSeatStore, SqlSettingsStore

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    membership_store: MembershipStore
    seat_store: SeatStore
    settings_store: SettingsStore
    notifier: Notifier
    seat_coordinator: SeatCoordinator
    scheduler: ReconciliationScheduler
    memberships: MembershipService
    engine: Optional[AsyncEngine] = None

    @classmethod
    def build(
        cls,
        settings: Settings,
        membership_store: MembershipStore,
        seat_store: SeatStore,
        settings_store: SettingsStore,
        notifier: Optional[Notifier] = None,
        clock: Clock = utc_now,
        engine: Optional[AsyncEngine] = None,
    ) -> "ServiceContainer":
        if notifier is None:
            notifier = build_notifier(settings.NOTIFY_CHANNELS)
        calculator = CycleCalculator(settings.CYCLE_DAYS, settings.HISTORY_CYCLES)
        coordinator = SeatCoordinator(
            seat_store,
            lock_timeout_seconds=settings.SEAT_LOCK_TIMEOUT_SECONDS,
            hold_seconds=settings.SEAT_LOCK_HOLD_SECONDS,
            clock=clock,
        )
        scheduler = ReconciliationScheduler.from_settings(
            settings,
            membership_store=membership_store,
            seat_store=seat_store,
            settings_store=settings_store,
            seat_coordinator=coordinator,
            notifier=notifier,
            calculator=calculator,
            clock=clock,
        )
        memberships = MembershipService(
            membership_store,
            seat_store,
            settings_store,
            coordinator,
            notifier,
            calculator=calculator,
            clock=clock,
            tz=settings.tz,
        )
        return cls(
            settings=settings,
            membership_store=membership_store,
            seat_store=seat_store,
            settings_store=settings_store,
            notifier=notifier,
            seat_coordinator=coordinator,
            scheduler=scheduler,
            memberships=memberships,
            engine=engine,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ServiceContainer":
        if settings.STORAGE_BACKEND == "memory":
            return cls.build(
                settings,
                InMemoryMembershipStore(),
                InMemorySeatStore(),
                InMemorySettingsStore(),
            )

        engine = build_engine(settings)
        sessions = build_sessionmaker(engine)
        return cls.build(
            settings,
            SqlMembershipStore(sessions),
            SqlSeatStore(sessions),
            SqlSettingsStore(sessions),
            engine=engine,
        )

    async def startup(self) -> None:
        created = await self.seat_store.provision(self.settings.SEAT_COUNT)
        logger.info("seats_ready", total=self.settings.SEAT_COUNT, created=created)
        if self.settings.SCHEDULER_ENABLED:
            await self.scheduler.start()

    async def shutdown(self) -> None:
        await self.scheduler.stop()
        if self.engine is not None:
            await self.engine.dispose()
