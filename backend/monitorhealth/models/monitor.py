"""Monitor model - HTTP endpoints under periodic health observation."""
from ..utils.time_utils import utcnow
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, JSON, Index
from sqlalchemy.orm import relationship

from ..database import Base


class Monitor(Base):
    """A monitored HTTP endpoint with auth, validation rules and runtime stats."""
    
    __tablename__ = "monitors"
    __table_args__ = (
        Index("enabled_next_check_idx", "enabled", "next_check_time"),
    )
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)  # Owner
    collection_id = Column(Integer, nullable=True, index=True)  # Optional grouping
    name = Column(String(255), nullable=False)
    url = Column(Text, nullable=False)
    auth_type = Column(String(50), nullable=False, default="none")  # none, basic, token, login
    auth_config = Column(JSON, nullable=False, default=dict)
    validation_rules = Column(JSON, nullable=False, default=lambda: {"statusCode": 200})
    check_interval = Column(Integer, nullable=False, default=30)  # minutes
    alert_emails = Column(JSON, nullable=False, default=list)
    enabled = Column(Boolean, nullable=False, default=True)
    
    # Runtime state, written by the scheduler
    status = Column(String(50), nullable=False, default="pending")  # pending, up, down
    last_check_time = Column(DateTime, nullable=True)
    next_check_time = Column(DateTime, nullable=True)
    last_latency = Column(Integer, nullable=True)  # ms
    consecutive_failures = Column(Integer, nullable=False, default=0)
    total_checks = Column(Integer, nullable=False, default=0)
    successful_checks = Column(Integer, nullable=False, default=0)
    
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    
    # Relationships
    check_results = relationship("CheckResult", back_populates="monitor", cascade="all, delete-orphan")
    alerts = relationship("Alert", back_populates="monitor", cascade="all, delete-orphan")
    
    def __repr__(self) -> str:
        return f"<Monitor id={self.id} name={self.name!r} status={self.status}>"
