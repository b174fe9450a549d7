"""Monitor actions API - run-now checks."""
from fastapi import APIRouter, HTTPException, Request

from ..exceptions import MonitorNotFoundError
from ..schemas.monitor import CheckOutcomeResponse

router = APIRouter(prefix="/api/monitors", tags=["monitors"])


@router.post("/{monitor_id}/check", response_model=CheckOutcomeResponse)
async def run_check_now(monitor_id: int, request: Request):
    """Run a monitor's check immediately and return the outcome."""
    scheduler = request.app.state.scheduler
    try:
        return await scheduler.trigger_manual_check(monitor_id)
    except MonitorNotFoundError:
        raise HTTPException(status_code=404, detail="Monitor not found")
