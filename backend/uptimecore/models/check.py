"""Check models - one immutable record per probe cycle."""
from datetime import datetime
from sqlalchemy import Column, Integer, Float, String, DateTime, Boolean, JSON, ForeignKey
from sqlalchemy.orm import declared_attr

from ..database import Base


class CheckMixin:
    """Columns shared by every check table."""

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(String, nullable=True)
    status = Column(Boolean, nullable=False)
    status_code = Column(Integer, nullable=True)
    response_time = Column(Float, nullable=True)  # milliseconds
    message = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    @declared_attr
    def monitor_id(cls):
        return Column(Integer, ForeignKey("monitors.id", ondelete="CASCADE"), nullable=False, index=True)


class Check(CheckMixin, Base):
    """Check for http, ping, docker and port monitors."""

    __tablename__ = "checks"


class PageSpeedCheck(CheckMixin, Base):
    """Lighthouse category scores on a 0-100 scale plus a subset of audits."""

    __tablename__ = "pagespeed_checks"

    accessibility = Column(Float, default=0)
    best_practices = Column(Float, default=0)
    seo = Column(Float, default=0)
    performance = Column(Float, default=0)
    audits = Column(JSON, nullable=True)  # cls, si, fcp, lcp, tbt


class HardwareCheck(CheckMixin, Base):
    """Metrics reported by a hardware agent."""

    __tablename__ = "hardware_checks"

    cpu = Column(JSON, default=dict)
    memory = Column(JSON, default=dict)
    disk = Column(JSON, default=dict)
    host = Column(JSON, default=dict)
    errors = Column(JSON, default=list)


class DistributedCheck(CheckMixin, Base):
    """Result delivered by the distributed probe network."""

    __tablename__ = "distributed_checks"

    # Timing breakdown in nanoseconds, as reported by the prober
    dns_took = Column(Float, nullable=True)
    conn_took = Column(Float, nullable=True)
    connect_took = Column(Float, nullable=True)
    tls_took = Column(Float, nullable=True)
    first_byte_took = Column(Float, nullable=True)
    body_read_took = Column(Float, nullable=True)

    continent = Column(String, nullable=True)
    country_code = Column(String, nullable=True)
    city = Column(String, nullable=True)
    location = Column(JSON, nullable=True)  # {"lat": ..., "lng": ...}
    upt_burnt = Column(String, nullable=True)  # decimal kept as text
