"""Scheduler status API."""
from fastapi import APIRouter, Request

from ..schemas.monitor import SchedulerStatusResponse

router = APIRouter(prefix="/api/scheduler", tags=["scheduler"])


@router.get("/status", response_model=SchedulerStatusResponse)
async def get_scheduler_status(request: Request):
    return request.app.state.scheduler.get_status()
