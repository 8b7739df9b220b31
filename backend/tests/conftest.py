"""
Pytest fixtures: fake clock, recording notifier, in-memory stores and an
HTTP client bound to an app built around them.

No database is needed; the SQLAlchemy store tests build their own SQLite
engine.
"""

from datetime import date, datetime, timezone
from typing import AsyncGenerator, Optional
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from studyhall.core.config import Settings
from studyhall.main import create_app
from studyhall.schemas.enums import FeeStatus, SeatStatus
from studyhall.schemas.membership import Membership
from studyhall.services.container import ServiceContainer
from studyhall.services.cycle_calculator import CycleCalculator
from studyhall.services.membership_service import MembershipService
from studyhall.services.scheduler import ReconciliationScheduler
from studyhall.services.seat_coordinator import SeatCoordinator
from studyhall.services.stores.memory import InMemoryMembershipStore, InMemorySeatStore, InMemorySettingsStore

from fakes import FakeClock, RecordingNotifier

UTC = ZoneInfo("UTC")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def calculator() -> CycleCalculator:
    return CycleCalculator()


@pytest.fixture
def membership_store() -> InMemoryMembershipStore:
    return InMemoryMembershipStore()


@pytest.fixture
def seat_store() -> InMemorySeatStore:
    return InMemorySeatStore(10)


@pytest.fixture
def settings_store() -> InMemorySettingsStore:
    return InMemorySettingsStore()


@pytest.fixture
def coordinator(seat_store, clock) -> SeatCoordinator:
    return SeatCoordinator(seat_store, lock_timeout_seconds=30, hold_seconds=5, clock=clock)


@pytest.fixture
def scheduler(membership_store, seat_store, settings_store, coordinator, notifier, clock) -> ReconciliationScheduler:
    return ReconciliationScheduler(
        membership_store,
        seat_store,
        settings_store,
        coordinator,
        notifier,
        clock=clock,
        tz=UTC,
        run_on_start=False,
    )


@pytest.fixture
def service(membership_store, seat_store, settings_store, coordinator, notifier, clock) -> MembershipService:
    return MembershipService(
        membership_store,
        seat_store,
        settings_store,
        coordinator,
        notifier,
        clock=clock,
        tz=UTC,
    )


@pytest_asyncio.fixture
async def seated_member(membership_store, seat_store):
    """Factory: store a membership and occupy its seat, bypassing registration."""

    async def create(
        member_id: str = "m1",
        seat_number: int = 5,
        slot: str = "Morning",
        due: date = date(2024, 2, 1),
        status: FeeStatus = FeeStatus.PAID,
        registration_date: date = date(2024, 1, 2),
        email: Optional[str] = None,
    ) -> Membership:
        membership = Membership(
            id=member_id,
            name=f"Member {member_id}",
            email=email or f"{member_id}@example.com",
            seat_number=seat_number,
            slot=slot,
            fee_status=status,
            registration_date=registration_date,
            next_due_date=due,
        )
        await membership_store.create(membership)
        await seat_store.occupy(seat_number, slot, member_id, SeatStatus.mirror(status))
        return membership

    return create


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        STORAGE_BACKEND="memory",
        SCHEDULER_ENABLED=False,
        TIMEZONE="UTC",
        SEAT_COUNT=10,
    )


@pytest_asyncio.fixture
async def container(test_settings, membership_store, seat_store, settings_store, notifier, clock) -> ServiceContainer:
    built = ServiceContainer.build(
        test_settings,
        membership_store,
        seat_store,
        settings_store,
        notifier=notifier,
        clock=clock,
    )
    await built.startup()
    yield built
    await built.shutdown()


@pytest_asyncio.fixture
async def client(container: ServiceContainer) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against an app wired to the in-memory container."""
    app = create_app(container)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
