"""Settings model - key-value store for global configuration."""
from ..utils.time_utils import utcnow
from sqlalchemy import Column, String, DateTime

from ..database import Base


class Setting(Base):
    """Global settings stored as key-value pairs."""
    
    __tablename__ = "settings"
    
    key = Column(String, primary_key=True)
    value = Column(String, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


# Setting keys read by the alerting pipeline
DEFAULT_ALERT_EMAIL_KEY = "default_alert_email"
SEND_RECOVERY_ALERTS_KEY = "send_recovery_alerts"  # "1" or "0"
