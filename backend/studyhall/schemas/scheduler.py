"""
Pydantic schemas for scheduler health and tick results.
"""

from datetime import datetime, time
from typing import Optional

from pydantic import BaseModel, Field


class TickReport(BaseModel):
    tick_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    memberships_checked: int = 0
    status_updates: int = 0
    reminders_sent: int = 0
    due_notices_sent: int = 0
    terminations: int = 0
    notifications_skipped: bool = False
    aborted: bool = False
    failures: list[str] = Field(default_factory=list)


class SchedulerStatus(BaseModel):
    running: bool
    active: bool
    last_tick_at: Optional[datetime]
    next_tick_at: Optional[datetime]
    daily_time: time
    backup_interval_hours: float
    last_report: Optional[TickReport] = None
