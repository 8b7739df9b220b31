"""
Pydantic schemas for membership records and membership-related requests.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from studyhall.schemas.enums import CycleKind, FeeStatus


class Membership(BaseModel):
    id: str
    name: str
    email: str
    phone: str = ""
    address: str = ""
    seat_number: int
    slot: str
    fee_status: FeeStatus = FeeStatus.DUE
    registration_date: date
    next_due_date: Optional[date] = None
    last_payment_date: Optional[date] = None
    # Due date a notice was last sent for; keeps repeated ticks from re-sending
    reminder_sent_for: Optional[date] = None
    due_notice_sent_for: Optional[date] = None
    left_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @property
    def due_date(self) -> date:
        """Current cycle due date; before any payment this is the registration date."""
        return self.next_due_date or self.registration_date

    @property
    def is_active(self) -> bool:
        return self.left_at is None


class MembershipCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field("", max_length=32)
    address: str = Field("", max_length=500)
    seat_number: int = Field(..., gt=0)
    slot: str = Field(..., min_length=1, max_length=32)


class PaymentCreate(BaseModel):
    paid_on: Optional[date] = None


class SeatChange(BaseModel):
    seat_number: int = Field(..., gt=0)


class Payment(BaseModel):
    id: Optional[int] = None
    membership_id: str
    paid_on: date
    amount: int
    cycle_kind: CycleKind
    next_due_date: date

    model_config = {"from_attributes": True}


class PaymentReceipt(BaseModel):
    membership: Membership
    payment: Payment
