"""
Persistence interfaces the engine depends on.
Implementations: in-memory (services/stores/memory.py) and SQLAlchemy
(services/stores/sql.py). Implementations raise StoreUnavailableError when
the backing store cannot be reached.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from studyhall.schemas.enums import SeatStatus
from studyhall.schemas.membership import Membership, Payment
from studyhall.schemas.seat import Seat
from studyhall.schemas.settings import FacilitySettings


class MembershipStore(ABC):

    @abstractmethod
    async def list_all(self) -> list[Membership]:
        """All memberships, including those that have left."""
        pass

    @abstractmethod
    async def get(self, membership_id: str) -> Optional[Membership]:
        pass

    @abstractmethod
    async def create(self, membership: Membership) -> Membership:
        pass

    @abstractmethod
    async def update(self, membership_id: str, fields: dict[str, Any]) -> Optional[Membership]:
        """
        Apply a partial update.

        Returns:
            The updated membership, or None if the id is unknown
        """
        pass

    @abstractmethod
    async def delete(self, membership_id: str) -> bool:
        pass

    @abstractmethod
    async def add_payment(self, payment: Payment) -> Payment:
        pass

    @abstractmethod
    async def list_payments(self, membership_id: str) -> list[Payment]:
        pass

    @abstractmethod
    async def add_log(self, membership_id: str, action: str, actor: str = "system") -> None:
        """Append an audit trail entry."""
        pass


class SeatStore(ABC):
    """
    Seat records with occupancy keyed by (seat number, slot).
    Occupancy writes are not atomic with reads; callers go through
    SeatCoordinator to serialize them.
    """

    @abstractmethod
    async def get(self, number: int) -> Optional[Seat]:
        pass

    @abstractmethod
    async def list_all(self) -> list[Seat]:
        pass

    @abstractmethod
    async def occupy(self, number: int, slot: str, membership_id: str, status: SeatStatus) -> Optional[Seat]:
        """Raises SeatUnavailableError if another membership holds the slot."""
        pass

    @abstractmethod
    async def vacate(self, number: int, slot: str) -> Optional[Seat]:
        pass

    @abstractmethod
    async def set_status(self, number: int, slot: str, status: SeatStatus) -> Optional[Seat]:
        pass

    @abstractmethod
    async def provision(self, count: int) -> int:
        """
        Ensure seats 1..count exist.

        Returns:
            Number of seats created
        """
        pass


class SettingsStore(ABC):

    @abstractmethod
    async def get(self) -> FacilitySettings:
        pass

    @abstractmethod
    async def update(self, settings: FacilitySettings) -> FacilitySettings:
        pass
