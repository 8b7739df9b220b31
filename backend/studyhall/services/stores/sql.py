"""
SQLAlchemy-backed store implementations.

Each call runs in its own short transaction. Driver and connection errors
surface as StoreUnavailableError so the engine can tell "the database is
down" apart from programming errors.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from studyhall.core.exceptions import SeatUnavailableError, StoreUnavailableError
from studyhall.core.logging import get_logger
from studyhall import models
from studyhall.schemas.enums import SeatStatus
from studyhall.schemas.membership import Membership, Payment
from studyhall.schemas.seat import Seat, SeatOccupant
from studyhall.schemas.settings import FacilitySettings
from studyhall.services.interfaces.stores import MembershipStore, SeatStore, SettingsStore

logger = get_logger(__name__)


class _SqlStore:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]):
        self._sessions = sessions

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._sessions() as session, session.begin():
                yield session
        except (SQLAlchemyError, OSError) as e:
            logger.error("store_error", store=type(self).__name__, error=str(e))
            raise StoreUnavailableError(str(e)) from e


def _column_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class SqlMembershipStore(_SqlStore, MembershipStore):

    async def list_all(self) -> list[Membership]:
        async with self._transaction() as session:
            result = await session.execute(select(models.Membership).order_by(models.Membership.seat_number))
            return [Membership.model_validate(row) for row in result.scalars().all()]

    async def get(self, membership_id: str) -> Optional[Membership]:
        async with self._transaction() as session:
            row = await session.get(models.Membership, membership_id)
            return Membership.model_validate(row) if row else None

    async def create(self, membership: Membership) -> Membership:
        async with self._transaction() as session:
            row = models.Membership(**{k: _column_value(v) for k, v in membership.model_dump().items()})
            session.add(row)
            await session.flush()
            return Membership.model_validate(row)

    async def update(self, membership_id: str, fields: dict[str, Any]) -> Optional[Membership]:
        async with self._transaction() as session:
            row = await session.get(models.Membership, membership_id)
            if row is None:
                return None
            for key, value in fields.items():
                setattr(row, key, _column_value(value))
            await session.flush()
            return Membership.model_validate(row)

    async def delete(self, membership_id: str) -> bool:
        async with self._transaction() as session:
            row = await session.get(models.Membership, membership_id)
            if row is None:
                return False
            await session.delete(row)
            return True

    async def add_payment(self, payment: Payment) -> Payment:
        async with self._transaction() as session:
            row = models.Payment(
                membership_id=payment.membership_id,
                paid_on=payment.paid_on,
                amount=payment.amount,
                cycle_kind=payment.cycle_kind.value,
                next_due_date=payment.next_due_date,
            )
            session.add(row)
            await session.flush()
            return Payment.model_validate(row)

    async def list_payments(self, membership_id: str) -> list[Payment]:
        async with self._transaction() as session:
            result = await session.execute(
                select(models.Payment)
                .where(models.Payment.membership_id == membership_id)
                .order_by(models.Payment.paid_on.asc())
            )
            return [Payment.model_validate(row) for row in result.scalars().all()]

    async def add_log(self, membership_id: str, action: str, actor: str = "system") -> None:
        async with self._transaction() as session:
            session.add(models.MembershipLog(
                membership_id=membership_id,
                action=action,
                actor=actor,
                timestamp=datetime.now(timezone.utc),
            ))


def _to_seat(row: models.Seat) -> Seat:
    return Seat(
        number=row.number,
        occupants={
            o.slot: SeatOccupant(membership_id=o.membership_id, status=SeatStatus(o.status))
            for o in row.occupancies
        },
    )


class SqlSeatStore(_SqlStore, SeatStore):

    async def get(self, number: int) -> Optional[Seat]:
        async with self._transaction() as session:
            row = await session.get(models.Seat, number, populate_existing=True)
            return _to_seat(row) if row else None

    async def list_all(self) -> list[Seat]:
        async with self._transaction() as session:
            result = await session.execute(select(models.Seat).order_by(models.Seat.number))
            return [_to_seat(row) for row in result.scalars().all()]

    async def _occupancy(self, session: AsyncSession, number: int, slot: str) -> Optional[models.SeatOccupancy]:
        result = await session.execute(
            select(models.SeatOccupancy).where(
                models.SeatOccupancy.seat_number == number,
                models.SeatOccupancy.slot == slot,
            )
        )
        return result.scalar_one_or_none()

    async def occupy(self, number: int, slot: str, membership_id: str, status: SeatStatus) -> Optional[Seat]:
        async with self._transaction() as session:
            if await session.get(models.Seat, number) is None:
                return None
            occupancy = await self._occupancy(session, number, slot)
            if occupancy is None:
                session.add(models.SeatOccupancy(
                    seat_number=number, slot=slot, membership_id=membership_id, status=status.value
                ))
                try:
                    await session.flush()
                except IntegrityError:
                    # uq_seat_slot_occupancy: a concurrent insert won the slot
                    raise SeatUnavailableError(number, slot) from None
            elif occupancy.membership_id != membership_id:
                raise SeatUnavailableError(number, slot, occupancy.membership_id)
            else:
                occupancy.status = status.value
        return await self.get(number)

    async def vacate(self, number: int, slot: str) -> Optional[Seat]:
        async with self._transaction() as session:
            if await session.get(models.Seat, number) is None:
                return None
            occupancy = await self._occupancy(session, number, slot)
            if occupancy is not None:
                await session.delete(occupancy)
        return await self.get(number)

    async def set_status(self, number: int, slot: str, status: SeatStatus) -> Optional[Seat]:
        async with self._transaction() as session:
            occupancy = await self._occupancy(session, number, slot)
            if occupancy is None:
                return None
            occupancy.status = status.value
        return await self.get(number)

    async def provision(self, count: int) -> int:
        async with self._transaction() as session:
            result = await session.execute(select(models.Seat.number))
            existing = set(result.scalars().all())
            missing = [n for n in range(1, count + 1) if n not in existing]
            session.add_all(models.Seat(number=n) for n in missing)
        if missing:
            logger.info("seats_provisioned", created=len(missing), total=count)
        return len(missing)


class SqlSettingsStore(_SqlStore, SettingsStore):

    async def get(self) -> FacilitySettings:
        async with self._transaction() as session:
            row = await session.get(models.FacilitySettings, 1)
            if row is None:
                defaults = FacilitySettings()
                session.add(models.FacilitySettings(id=1, **defaults.model_dump()))
                return defaults
            return FacilitySettings.model_validate(row)

    async def update(self, settings: FacilitySettings) -> FacilitySettings:
        async with self._transaction() as session:
            row = await session.get(models.FacilitySettings, 1)
            if row is None:
                session.add(models.FacilitySettings(id=1, **settings.model_dump()))
            else:
                row.slot_pricing = settings.slot_pricing
                row.slot_timings = settings.slot_timings
                row.templates = settings.templates
        return settings
