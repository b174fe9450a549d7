"""Check result repository - persisted probe outcomes and owner stats."""
import logging
from dataclasses import replace
from datetime import timedelta
from typing import Any, Dict

from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models import CheckResult, Monitor
from ..utils.db_utils import retry_on_lock
from ..utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class CheckResultRepository:
    """Data access for check results."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create(self, outcome):
        """Persist a probe outcome and return a copy carrying the stored id."""
        row = CheckResult(
            monitor_id=outcome.monitor_id,
            status=outcome.status,
            http_status=outcome.http_status,
            latency=outcome.latency_ms,
            error_message=outcome.error_message,
            validation_errors=list(outcome.validation_errors),
            response_data=outcome.response_data,
            response_metadata=outcome.response_metadata,
            checked_at=outcome.checked_at,
        )
        async with self.session_factory() as session:
            session.add(row)
            await retry_on_lock(session.commit)
        return replace(outcome, id=row.id)

    async def stats_for_owner(self, owner_id: int, hours: int = 24) -> Dict[str, Any]:
        """Aggregate recent results across all of an owner's monitors."""
        since = utcnow() - timedelta(hours=hours)
        is_success = CheckResult.status == "success"

        async with self.session_factory() as session:
            result = await session.execute(
                select(
                    func.count(CheckResult.id),
                    func.sum(case((is_success, 1), else_=0)),
                    func.avg(case((is_success, CheckResult.latency), else_=None)),
                )
                .join(Monitor, Monitor.id == CheckResult.monitor_id)
                .where(Monitor.user_id == owner_id, CheckResult.checked_at >= since)
            )
            total, successful, avg_latency = result.one()

        total = total or 0
        successful = int(successful or 0)
        return {
            "period": f"{hours}h",
            "total_checks": total,
            "successful_checks": successful,
            "failed_checks": total - successful,
            "success_rate": f"{successful / total * 100:.2f}" if total else "0",
            "avg_latency": round(avg_latency) if avg_latency else 0,
        }
