"""Monitor repository - due-set queries and scheduler/stat writes."""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models import Monitor
from ..utils.db_utils import retry_on_lock
from ..utils.time_utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class MonitorStatsUpdate:
    """Fields written after every completed probe."""
    status: str
    last_check_time: datetime
    last_latency: int
    consecutive_failures: int
    is_success: bool


class MonitorRepository:
    """Data access for monitors. Returned rows are detached snapshots."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def find_due(self, now: datetime, owner_ids: Optional[Iterable[int]] = None) -> List[Monitor]:
        """Enabled monitors whose next check time has arrived, oldest first."""
        query = select(Monitor).where(
            Monitor.enabled.is_(True),
            Monitor.next_check_time.is_not(None),
            Monitor.next_check_time <= now,
        )
        if owner_ids is not None:
            query = query.where(Monitor.user_id.in_(list(owner_ids)))

        async with self.session_factory() as session:
            result = await session.execute(query.order_by(Monitor.next_check_time.asc()))
            return list(result.scalars().all())

    async def find_enabled(self) -> List[Monitor]:
        async with self.session_factory() as session:
            result = await session.execute(select(Monitor).where(Monitor.enabled.is_(True)))
            return list(result.scalars().all())

    async def find_by_id(self, monitor_id: int) -> Optional[Monitor]:
        async with self.session_factory() as session:
            return await session.get(Monitor, monitor_id)

    async def find_by_owner(self, owner_id: int) -> List[Monitor]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Monitor).where(Monitor.user_id == owner_id).order_by(Monitor.id)
            )
            return list(result.scalars().all())

    async def _execute_and_commit(self, statement):
        async with self.session_factory() as session:
            await session.execute(statement)
            await retry_on_lock(session.commit)

    async def advance_next_check(self, monitor_id: int, next_check_time: datetime):
        await self._execute_and_commit(
            update(Monitor)
            .where(Monitor.id == monitor_id)
            .values(next_check_time=next_check_time, updated_at=utcnow())
        )

    async def update_stats(self, monitor_id: int, stats: MonitorStatsUpdate):
        """Write the new status and bump counters atomically in SQL."""
        await self._execute_and_commit(
            update(Monitor)
            .where(Monitor.id == monitor_id)
            .values(
                status=stats.status,
                last_check_time=stats.last_check_time,
                last_latency=stats.last_latency,
                consecutive_failures=stats.consecutive_failures,
                total_checks=Monitor.total_checks + 1,
                successful_checks=Monitor.successful_checks + (1 if stats.is_success else 0),
                updated_at=utcnow(),
            )
        )
