"""Scheduler service - selects due monitors and dispatches their checks.

Scheduling design:
- One APScheduler tick (default every minute) queries monitors whose
  next_check_time has arrived
- Each due monitor's next_check_time is advanced by its interval from the
  previous value and persisted *before* its probe is dispatched, so a slow
  probe neither drifts the schedule nor gets selected again by a later tick
- Probes run concurrently behind a semaphore (default 10 in flight)
- A failed pipeline is logged; the next attempt is pulled in to at most
  RETRY_BACKOFF_MINUTES from the tick so transient outages recover quickly
"""
import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Set

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import settings
from ..exceptions import MonitorNotFoundError
from ..utils.time_utils import compute_next_check, utcnow

logger = logging.getLogger(__name__)

CATCH_UP_IMMEDIATE = "immediate"
CATCH_UP_REALIGN = "realign"

# Delay before the first check of a never-checked monitor
FIRST_CHECK_DELAY = timedelta(minutes=1)


class SchedulerService:
    """Periodic tick loop with bounded-concurrency dispatch.

    Args:
        monitor_repository: provides find_due, find_enabled, find_by_id and
            advance_next_check
        monitor_service: provides execute_check(monitor)
        sessions: active session registry, consulted when restricting
            background checks to owners with an active session
    """

    def __init__(
        self,
        monitor_repository,
        monitor_service,
        *,
        tick_minutes: Optional[int] = None,
        max_concurrent_checks: Optional[int] = None,
        retry_backoff_minutes: Optional[int] = None,
        catch_up_policy: Optional[str] = None,
        restrict_to_active_owners: Optional[bool] = None,
        sessions=None,
    ):
        self.monitors = monitor_repository
        self.monitor_service = monitor_service
        self.sessions = sessions

        self.tick_minutes = tick_minutes or settings.scheduler_tick_minutes
        self.max_concurrent_checks = max_concurrent_checks or settings.max_concurrent_checks
        self.retry_backoff_minutes = (
            settings.retry_backoff_minutes if retry_backoff_minutes is None else retry_backoff_minutes
        )
        self.catch_up_policy = catch_up_policy or settings.catch_up_policy
        if self.catch_up_policy not in (CATCH_UP_IMMEDIATE, CATCH_UP_REALIGN):
            logger.warning(f"Unknown catch-up policy '{self.catch_up_policy}', using '{CATCH_UP_IMMEDIATE}'")
            self.catch_up_policy = CATCH_UP_IMMEDIATE
        self.restrict_to_active_owners = (
            settings.restrict_to_active_owners if restrict_to_active_owners is None else restrict_to_active_owners
        )

        self.scheduler: Optional[AsyncIOScheduler] = None
        self._running = False
        self._semaphore = asyncio.Semaphore(self.max_concurrent_checks)
        self._in_flight: Set[int] = set()

    def start(self):
        """Start the tick loop. Must be called with a running event loop."""
        if self._running:
            logger.warning("Scheduler is already running")
            return

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.run_tick,
            trigger=IntervalTrigger(minutes=self.tick_minutes),
            id="run_checks",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=self.tick_minutes * 60,
        )
        self.scheduler.start()
        self._running = True
        logger.info(f"Scheduler started (tick={self.tick_minutes}m, max_concurrent={self.max_concurrent_checks})")

    def stop(self):
        """Stop the tick loop. In-flight probes finish on their own."""
        if self.scheduler and self._running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
        self.scheduler = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def get_status(self) -> Dict[str, Any]:
        return {
            "is_running": self._running,
            "tick_minutes": self.tick_minutes,
            "max_concurrent_checks": self.max_concurrent_checks,
            "in_flight": len(self._in_flight),
        }

    async def initialize_monitors(self, now: Optional[datetime] = None) -> int:
        """Give every enabled monitor a next_check_time. Returns how many were updated."""
        now = now or utcnow()
        monitors = await self.monitors.find_enabled()
        updated = 0

        for monitor in monitors:
            next_check = monitor.next_check_time
            if next_check is None:
                if monitor.last_check_time:
                    next_check = monitor.last_check_time + timedelta(minutes=monitor.check_interval)
                else:
                    next_check = now + FIRST_CHECK_DELAY

            if self.catch_up_policy == CATCH_UP_REALIGN and next_check < now:
                next_check = compute_next_check(next_check, monitor.check_interval, now, CATCH_UP_REALIGN)

            if next_check == monitor.next_check_time:
                continue

            try:
                await self.monitors.advance_next_check(monitor.id, next_check)
                updated += 1
                logger.info(f"Initialized monitor \"{monitor.name}\" - next check at {next_check.isoformat()}")
            except Exception as e:
                logger.error(f"Failed to initialize monitor {monitor.id}: {e}")

        logger.info(f"Initialized {updated} of {len(monitors)} enabled monitors")
        return updated

    async def run_tick(self, now: Optional[datetime] = None):
        """Check every due monitor once."""
        try:
            now = now or utcnow()

            owner_ids = None
            if self.restrict_to_active_owners:
                owner_ids = self.sessions.active_owner_ids() if self.sessions else set()
                if not owner_ids:
                    return

            due_monitors = await self.monitors.find_due(now, owner_ids)
            if not due_monitors:
                return

            logger.info(f"Found {len(due_monitors)} monitor(s) due for check")

            # Advance every schedule before any probe starts
            dispatch = []
            for monitor in due_monitors:
                if monitor.id in self._in_flight:
                    logger.debug(f"Monitor {monitor.id} still in flight, skipping")
                    continue

                next_check = compute_next_check(
                    monitor.next_check_time, monitor.check_interval, now, self.catch_up_policy
                )
                try:
                    await self.monitors.advance_next_check(monitor.id, next_check)
                except Exception as e:
                    logger.error(f"Failed to advance next check for monitor {monitor.name}, skipping this tick: {e}")
                    continue

                self._in_flight.add(monitor.id)
                dispatch.append(self._check_with_limit(monitor, next_check, now))

            await asyncio.gather(*dispatch)
            logger.debug(f"Completed {len(dispatch)} monitor check(s)")

        except Exception as e:
            logger.error(f"Error in scheduler tick: {e}")

    async def _check_with_limit(self, monitor, next_check: datetime, now: datetime):
        try:
            async with self._semaphore:
                started = time.perf_counter()
                await self.monitor_service.execute_check(monitor)
                duration = int((time.perf_counter() - started) * 1000)
                logger.debug(f"Monitor \"{monitor.name}\" check completed in {duration}ms")
        except Exception as e:
            logger.error(f"Failed to execute check for monitor {monitor.name}: {e}")
            await self._schedule_retry(monitor, next_check, now)
        finally:
            self._in_flight.discard(monitor.id)

    async def _schedule_retry(self, monitor, next_check: datetime, now: datetime):
        """Pull the next attempt in after a failed cycle, never pushing it later."""
        if self.retry_backoff_minutes <= 0:
            return

        retry_at = now + timedelta(minutes=min(monitor.check_interval, self.retry_backoff_minutes))
        if retry_at >= next_check:
            return

        try:
            await self.monitors.advance_next_check(monitor.id, retry_at)
        except Exception as e:
            logger.error(f"Failed to update next check time for monitor {monitor.name}: {e}")

    async def trigger_manual_check(self, monitor_or_id):
        """Run a monitor's check now, outside the schedule."""
        monitor = monitor_or_id
        if isinstance(monitor_or_id, (int, str)):
            try:
                monitor_id = int(monitor_or_id)
            except ValueError:
                raise MonitorNotFoundError(monitor_or_id)
            monitor = await self.monitors.find_by_id(monitor_id)
            if monitor is None:
                raise MonitorNotFoundError(monitor_or_id)

        logger.info(f"Manual check triggered for monitor: {monitor.id}")
        return await self.monitor_service.execute_check(monitor)
