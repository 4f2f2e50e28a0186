"""Notification model - alert channels and hardware hysteresis counters."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, JSON, ForeignKey
from sqlalchemy.orm import relationship

from ..database import Base

DEFAULT_ALERT_THRESHOLD = 5


class Notification(Base):
    """An email or webhook channel attached to a monitor.

    The ``*_alert_threshold`` columns count down on every cycle where the
    matching hardware metric is above its threshold and are reset to
    ``alert_threshold`` when an alert fires.
    """

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    monitor_id = Column(Integer, ForeignKey("monitors.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String, nullable=False)  # email, webhook
    platform = Column(String, nullable=True)  # telegram, slack, discord
    address = Column(String, nullable=True)  # email address
    config = Column(JSON, nullable=True)  # webhook_url, bot_token, chat_id

    alert_threshold = Column(Integer, default=DEFAULT_ALERT_THRESHOLD)
    cpu_alert_threshold = Column(Integer, default=DEFAULT_ALERT_THRESHOLD)
    memory_alert_threshold = Column(Integer, default=DEFAULT_ALERT_THRESHOLD)
    disk_alert_threshold = Column(Integer, default=DEFAULT_ALERT_THRESHOLD)

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationship
    monitor = relationship("Monitor", back_populates="notifications")
