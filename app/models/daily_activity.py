"""
DailyActivity model: one finalized row of a worker's activity history.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (Column, DateTime, Float, ForeignKey, Index, Integer,
                        String)

from app.db.base import Base


class DailyActivity(Base):
    __tablename__ = "daily_activity"
    __table_args__ = (Index("ix_daily_activity_worker_date", "worker_id", "date"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    worker_id: int = Column(Integer, ForeignKey("workers.id"), nullable=False)  # type: ignore[assignment]
    date: str = Column(String(10), nullable=False, index=True)  # type: ignore[assignment]  # YYYY-MM-DD
    login_time: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    logout_time: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    total_online_time: float | None = Column(Float, nullable=True)  # type: ignore[assignment]  # minutes
    break_count: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    total_break_time: float | None = Column(Float, nullable=True)  # type: ignore[assignment]  # minutes

    def to_record(self) -> dict[str, Any]:
        """Return the row in the upstream history-feed shape."""
        return {
            "date": self.date,
            "loginTime": self.login_time,
            "logoutTime": self.logout_time,
            "totalOnlineTime": self.total_online_time,
            "breakCount": self.break_count,
            "totalBreakTime": self.total_break_time,
        }
