"""
Pydantic shapes produced by the cycle calculator.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel

from studyhall.schemas.enums import CycleKind, FeeStatus


class DueDateCalculation(BaseModel):
    due_date: date
    days_valid_for: int
    cycle_kind: CycleKind
    description: str


class FeePeriod(BaseModel):
    period: str
    amount: int
    paid_date: Optional[date]
    due_date: date
    status: FeeStatus
    days_valid_for: int


class FeeSummary(BaseModel):
    current_status: FeeStatus
    next_due_date: date
    days_until_due: int
    current_amount: int
    outstanding_amount: int
    description: str
