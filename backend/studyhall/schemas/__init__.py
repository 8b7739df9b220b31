from studyhall.schemas.enums import FeeStatus, SeatStatus, CycleKind, NotificationCategory
from studyhall.schemas.cycle import DueDateCalculation, FeePeriod, FeeSummary
from studyhall.schemas.membership import Membership, MembershipCreate, PaymentCreate, SeatChange, Payment, PaymentReceipt
from studyhall.schemas.seat import Seat, SeatOccupant, ReservationOutcome, ReservationResult, LockStatus
from studyhall.schemas.settings import FacilitySettings
from studyhall.schemas.scheduler import TickReport, SchedulerStatus

__all__ = [
    "FeeStatus", "SeatStatus", "CycleKind", "NotificationCategory",
    "DueDateCalculation", "FeePeriod", "FeeSummary",
    "Membership", "MembershipCreate", "PaymentCreate", "SeatChange", "Payment", "PaymentReceipt",
    "Seat", "SeatOccupant", "ReservationOutcome", "ReservationResult", "LockStatus",
    "FacilitySettings",
    "TickReport", "SchedulerStatus",
]
