"""Alert repository - alert audit log and alert preferences."""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import settings
from ..models import Alert, Setting
from ..models.setting import DEFAULT_ALERT_EMAIL_KEY, SEND_RECOVERY_ALERTS_KEY
from ..utils.db_utils import retry_on_lock
from ..utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class AlertRepository:
    """Persists alerts and reads alert preferences (database first, then environment)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create(
        self,
        monitor_id: int,
        alert_type: str,
        message: str,
        recipients: List[str],
        email_sent: bool,
        email_error: Optional[str] = None,
        sent_at: Optional[datetime] = None,
    ) -> Alert:
        alert = Alert(
            monitor_id=monitor_id,
            alert_type=alert_type,
            message=message,
            recipients=list(recipients),
            email_sent=email_sent,
            email_error=email_error,
            sent_at=sent_at or utcnow(),
        )
        async with self.session_factory() as session:
            session.add(alert)
            await retry_on_lock(session.commit)
        return alert

    async def _get_setting(self, key: str) -> Optional[str]:
        async with self.session_factory() as session:
            setting = await session.get(Setting, key)
            return setting.value if setting else None

    async def get_default_recipient(self) -> Optional[str]:
        value = await self._get_setting(DEFAULT_ALERT_EMAIL_KEY)
        return (value or "").strip() or settings.default_alert_email or None

    async def get_recovery_alerts_enabled(self) -> bool:
        value = await self._get_setting(SEND_RECOVERY_ALERTS_KEY)
        if value is None:
            return settings.send_recovery_alerts
        return value.strip().lower() in ("1", "true", "yes", "on")
