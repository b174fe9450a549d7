"""Naive-UTC time helpers (database columns store naive UTC)."""
from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def compute_next_check(
    previous: Optional[datetime],
    interval_minutes: int,
    now: datetime,
    catch_up_policy: str = "immediate",
) -> datetime:
    """Next due time, advanced from the previous schedule rather than from now.
    
    With the "realign" policy a stale schedule is skipped forward by whole
    intervals to the first slot after now, keeping its phase.
    """
    interval = timedelta(minutes=max(int(interval_minutes or 1), 1))
    next_check = (previous or now) + interval
    
    if catch_up_policy == "realign" and next_check <= now:
        missed = (now - next_check) // interval + 1
        next_check = next_check + missed * interval
    
    return next_check
