"""
Worker & BreakLog models: the live state of each support worker.

The rows mirror what the CRM backend exposes for a worker: the current
session's login/logout stamps, the live work status and the closed break
log. They are read-only from this service's point of view.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (Boolean, Column, DateTime, Float, ForeignKey, Index,
                        Integer, String)
from sqlalchemy.orm import relationship

from app.db.base import Base


class Worker(Base):
    __tablename__ = "workers"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    employee_id: str | None = Column(String(64), nullable=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    email: str | None = Column(String(320), nullable=True)  # type: ignore[assignment]
    role: str = Column(String(30), nullable=False, default="Agent", index=True)  # type: ignore[assignment]
    # Agent | QA | TL
    is_active: bool = Column(Boolean, default=False, server_default="false")  # type: ignore[assignment]
    is_blocked: bool = Column(Boolean, default=False, server_default="false")  # type: ignore[assignment]
    work_status: str = Column(String(10), nullable=False, default="active")  # type: ignore[assignment]
    # active | break
    login_time: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    logout_time: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    break_started_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    break_reason: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    break_logs = relationship(
        "BreakLog",
        back_populates="worker",
        cascade="all, delete-orphan",
        order_by="BreakLog.start",
    )

    def to_record(self) -> dict[str, Any]:
        """Return the worker in the upstream CRM record shape."""
        return {
            "id": self.id,
            "name": self.name,
            "employee_id": self.employee_id,
            "email": self.email,
            "role": self.role,
            "isBlocked": self.is_blocked,
            "is_active": self.is_active,
            "workStatus": self.work_status,
            "login_time": self.login_time,
            "logout_time": self.logout_time,
            "break_time": self.break_started_at,
            "breakReason": self.break_reason,
            "breakLogs": [log.to_record() for log in self.break_logs],
        }


class BreakLog(Base):
    __tablename__ = "break_logs"
    __table_args__ = (Index("ix_break_logs_worker_start", "worker_id", "start"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    worker_id: int = Column(Integer, ForeignKey("workers.id"), nullable=False)  # type: ignore[assignment]
    start: datetime = Column(DateTime(timezone=True), nullable=False)  # type: ignore[assignment]
    end: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    duration: float | None = Column(Float, nullable=True)  # type: ignore[assignment]  # minutes
    reason: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]

    worker = relationship("Worker", back_populates="break_logs")

    def to_record(self) -> dict[str, Any]:
        return {
            "start": self.start,
            "end": self.end,
            "duration": self.duration,
            "reason": self.reason,
        }
