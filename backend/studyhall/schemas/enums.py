"""
Status vocabularies shared by the engine, the ORM models and the API.
"""

from enum import Enum


class FeeStatus(str, Enum):
    PAID = "paid"
    DUE = "due"
    EXPIRED = "expired"

    @property
    def rank(self) -> int:
        """Position in the forward-only lifecycle paid -> due -> expired."""
        return _FEE_STATUS_ORDER.index(self)


_FEE_STATUS_ORDER = [FeeStatus.PAID, FeeStatus.DUE, FeeStatus.EXPIRED]


class SeatStatus(str, Enum):
    AVAILABLE = "available"
    PAID = "paid"
    DUE = "due"
    EXPIRED = "expired"

    @classmethod
    def mirror(cls, fee_status: FeeStatus) -> "SeatStatus":
        return cls(fee_status.value)


class CycleKind(str, Enum):
    FULL = "full"
    PARTIAL = "partial"


class NotificationCategory(str, Enum):
    REMINDER = "reminder"
    DUE = "due"
    OVERDUE = "overdue"
    PAYMENT = "payment"
    ADMIN = "admin"
