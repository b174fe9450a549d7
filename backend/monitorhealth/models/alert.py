"""Alert model - audit log of detected status transitions."""
from ..utils.time_utils import utcnow
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, JSON, ForeignKey
from sqlalchemy.orm import relationship

from ..database import Base


class Alert(Base):
    """Record of a failure or recovery alert and its delivery outcome."""
    
    __tablename__ = "alerts"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    monitor_id = Column(Integer, ForeignKey("monitors.id", ondelete="CASCADE"), nullable=False, index=True)
    alert_type = Column(String(50), nullable=False)  # failure, recovery
    message = Column(Text, nullable=False)
    recipients = Column(JSON, nullable=False, default=list)
    email_sent = Column(Boolean, nullable=False, default=False)
    email_error = Column(Text, nullable=True)
    sent_at = Column(DateTime, default=utcnow)
    
    monitor = relationship("Monitor", back_populates="alerts")
