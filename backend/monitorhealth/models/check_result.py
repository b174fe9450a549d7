"""CheckResult model - persisted probe outcomes."""
from ..utils.time_utils import utcnow
from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, ForeignKey, Index
from sqlalchemy.orm import relationship

from ..database import Base


class CheckResult(Base):
    """Outcome of a single probe against a monitor."""
    
    __tablename__ = "check_results"
    __table_args__ = (
        Index("monitor_id_checked_at_idx", "monitor_id", "checked_at"),
    )
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    monitor_id = Column(Integer, ForeignKey("monitors.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(50), nullable=False)  # success, failure
    http_status = Column(Integer, nullable=True)
    latency = Column(Integer, nullable=False, default=0)  # ms
    error_message = Column(Text, nullable=True)
    validation_errors = Column(JSON, nullable=False, default=list)
    response_data = Column(Text, nullable=True)  # Truncated body sample
    response_metadata = Column(JSON, nullable=True)
    checked_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    
    monitor = relationship("Monitor", back_populates="check_results")
