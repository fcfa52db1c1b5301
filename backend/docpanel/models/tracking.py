"""
DocPanel - View tracking tables
===============================
Local, time-indexed rows used to de-duplicate view counts and collect
reading durations. Never read back for display.
"""

from sqlalchemy import BigInteger, Column, Index, Integer, String

from docpanel.core.database import Base


class ViewLog(Base):
    __tablename__ = "view_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entry_id = Column(String(64), nullable=False)
    ip_address = Column(String(128), nullable=False)  # HMAC of the visitor IP
    viewed_at = Column(BigInteger, nullable=False)  # epoch seconds

    __table_args__ = (
        Index("ix_view_logs_entry_ip_time", "entry_id", "ip_address", "viewed_at"),
    )


class ViewDuration(Base):
    __tablename__ = "view_durations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entry_id = Column(String(64), nullable=False, index=True)
    duration_seconds = Column(Integer, nullable=False)
    logged_at = Column(BigInteger, nullable=False)
    ip_address = Column(String(128), nullable=True)
