"""Pydantic schemas for assembled activity reports."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class WorkerIdentity(BaseModel):
    name: str
    employee_id: str | None = None
    email: str | None = None
    role: str | None = None
    status: str = "Offline"
    is_blocked: bool = False


class ReportRow(BaseModel):
    date: str
    login_time: str
    logout_time: str
    online_time: str
    breaks: int
    break_duration: str


class ReportSummary(BaseModel):
    days_with_data: int
    total_online_minutes: float
    total_online: str
    total_break_minutes: float
    total_break: str
    total_breaks: int
    average_daily_online_minutes: int
    average_daily_online: str


DAY_HEADERS = ["Date", "Login Time", "Logout Time", "Online Time", "Breaks", "Break Duration"]


class WorkerReport(BaseModel):
    title: str
    generated_on: str
    period: str
    period_label: str
    identity: WorkerIdentity
    rows: list[ReportRow]
    summary: ReportSummary

    def as_table(self) -> list[list[Any]]:
        table: list[list[Any]] = [
            [self.title],
            ["Generated On", self.generated_on],
            ["Period", self.period_label],
            [],
            ["Worker Details"],
            ["Name", self.identity.name],
            ["Employee ID", self.identity.employee_id or "N/A"],
            ["Email", self.identity.email or "N/A"],
            ["Role", self.identity.role or "N/A"],
            ["Current Status", self.identity.status],
            [],
            ["Day-by-Day Activity"],
            list(DAY_HEADERS),
        ]
        table.extend(_row_cells(row) for row in self.rows)
        table.extend(
            [
                [],
                ["Summary"],
                ["Total Days with Data", self.summary.days_with_data],
                ["Total Online Time", self.summary.total_online],
                ["Total Break Time", self.summary.total_break],
                ["Total Breaks", self.summary.total_breaks],
                ["Average Daily Online", self.summary.average_daily_online],
            ]
        )
        return table


class TeamMemberReport(BaseModel):
    identity: WorkerIdentity
    login_time: str
    logout_time: str
    rows: list[ReportRow]
    summary: ReportSummary


class TeamReport(BaseModel):
    title: str
    generated_on: str
    period: str
    period_label: str
    total_workers: int
    average_online_minutes: int
    average_online: str
    members: list[TeamMemberReport]
    generated_at: datetime

    def as_table(self) -> list[list[Any]]:
        table: list[list[Any]] = [
            [self.title],
            ["Period", self.period_label],
            ["Generated On", self.generated_on],
            ["Type", f"{self.period.capitalize()} Activity Report"],
            [],
            ["Summary"],
            ["Total Workers", self.total_workers],
            ["Avg Online Time", self.average_online],
            [],
        ]
        if self.period == "daily":
            table.append(
                [
                    "S.No",
                    "Name",
                    "Email",
                    "Status",
                    "Login Time",
                    "Logout Time",
                    "Online Time",
                    "Breaks",
                    "Break Duration",
                ]
            )
            for index, member in enumerate(self.members, start=1):
                table.append(
                    [
                        index,
                        member.identity.name,
                        member.identity.email or "",
                        member.identity.status,
                        member.login_time,
                        member.logout_time,
                        member.summary.total_online,
                        member.summary.total_breaks,
                        member.summary.total_break,
                    ]
                )
            return table

        table.append(["Detailed Day-by-Day Report"])
        for member in self.members:
            table.append([])
            table.append(
                [
                    f"Worker: {member.identity.name}",
                    f"Email: {member.identity.email or 'N/A'}",
                    f"Employee ID: {member.identity.employee_id or 'N/A'}",
                ]
            )
            table.append(list(DAY_HEADERS))
            table.extend(_row_cells(row) for row in member.rows)
            table.append(["Total", "", "", member.summary.total_online, member.summary.total_breaks, ""])
            table.append(
                [
                    "Days with Data",
                    member.summary.days_with_data,
                    "Avg Daily",
                    member.summary.average_daily_online,
                    "",
                    "",
                ]
            )
        return table


def _row_cells(row: ReportRow) -> list[Any]:
    return [
        row.date,
        row.login_time,
        row.logout_time,
        row.online_time,
        row.breaks,
        row.break_duration,
    ]
