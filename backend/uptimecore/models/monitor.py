"""Monitor model - targets under observation."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON
from sqlalchemy.orm import relationship

from ..database import Base


class Monitor(Base):
    """A monitored target - http, ping, pagespeed, hardware, docker, port or distributed_http."""

    __tablename__ = "monitors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(String, nullable=True)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False)
    url = Column(String, nullable=False)  # URL, hostname, or container id/name
    port = Column(Integer, nullable=True)  # port monitors only
    secret = Column(String, nullable=True)  # Bearer token for http probes

    # Response matching (http-based probes)
    json_path = Column(String, nullable=True)
    match_method = Column(String, nullable=True)  # include, regex, equal
    expected_value = Column(String, nullable=True)

    # Hardware thresholds as fractions: {"usage_cpu": 0.8, "usage_memory": 0.9, "usage_disk": -1}
    thresholds = Column(JSON, nullable=True)

    # None = never checked, True = up, False = down
    status = Column(Boolean, nullable=True)

    interval = Column(Integer, default=60000)  # milliseconds between checks
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    notifications = relationship("Notification", back_populates="monitor", cascade="all, delete-orphan")
