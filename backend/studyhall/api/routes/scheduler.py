"""
Reconciliation scheduler control. The trigger endpoint doubles as a webhook
for external cron services.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from studyhall.api.deps import get_scheduler
from studyhall.schemas.scheduler import SchedulerStatus, TickReport
from studyhall.services.scheduler import ReconciliationScheduler

router = APIRouter(prefix="/scheduler", tags=["Scheduler"])


@router.get("/status", response_model=SchedulerStatus)
async def scheduler_status(scheduler: ReconciliationScheduler = Depends(get_scheduler)):
    return scheduler.status()


@router.post("/trigger", response_model=TickReport)
async def trigger_tick(scheduler: ReconciliationScheduler = Depends(get_scheduler)):
    report = await scheduler.trigger_now("webhook")
    if report is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A reconciliation tick is already running",
        )
    return report
