"""Payroll CSV export of a pay period."""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from punchd.calculators.overtime import round_to_cents
from punchd.calculators.types import ZERO
from punchd.models import Job, PayPeriod, TimeEntry, User

HEADER = [
    "Worker",
    "Job",
    "Date",
    "Clock In",
    "Clock Out",
    "Break Minutes",
    "Regular Hours",
    "OT Hours",
    "DT Hours",
    "Rate",
    "Regular Pay",
    "OT Pay",
    "DT Pay",
    "Total Pay",
    "Status",
]


@dataclass(frozen=True)
class ExportRow:
    """One time entry with the names the spreadsheet shows."""

    entry: TimeEntry
    worker_name: str
    job_name: str | None


def hours(minutes: int) -> Decimal:
    """Minutes as decimal hours, rounded to 2 places."""
    return round_to_cents(Decimal(minutes or 0) / Decimal(60))


def _time(value: datetime | None) -> str:
    return value.strftime("%H:%M") if value is not None else ""


class ExportService:
    """Builds the payroll spreadsheet view of a pay period.

    One row per entry clocked in within the period (ordered by worker then
    clock-in), followed by a totals row.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def period_rows(self, period: PayPeriod) -> list[ExportRow]:
        result = await self.session.execute(
            select(TimeEntry, User.name, Job.name)
            .join(User, User.id == TimeEntry.user_id)
            .outerjoin(Job, Job.id == TimeEntry.job_id)
            .where(
                TimeEntry.company_id == period.company_id,
                TimeEntry.clock_in_time >= period.start_date,
                TimeEntry.clock_in_time <= period.end_date,
            )
            .order_by(User.name, TimeEntry.clock_in_time)
        )
        return [
            ExportRow(entry=entry, worker_name=worker_name, job_name=job_name)
            for entry, worker_name, job_name in result.all()
        ]

    @staticmethod
    def filename(period: PayPeriod) -> str:
        return (
            f"payroll-{period.start_date.date().isoformat()}"
            f"-to-{period.end_date.date().isoformat()}.csv"
        )

    @staticmethod
    def render_csv(rows: Iterable[ExportRow]) -> str:
        """Render rows plus a totals row as CSV text."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(HEADER)

        minutes = {"break": 0, "regular": 0, "overtime": 0, "double_time": 0}
        pay = {"regular": ZERO, "overtime": ZERO, "double_time": ZERO, "total": ZERO}

        for row in rows:
            entry = row.entry
            writer.writerow(
                [
                    row.worker_name,
                    row.job_name or "Travel",
                    entry.clock_in_time.date().isoformat(),
                    _time(entry.clock_in_time),
                    _time(entry.clock_out_time),
                    entry.break_minutes or 0,
                    hours(entry.regular_minutes),
                    hours(entry.overtime_minutes),
                    hours(entry.double_time_minutes),
                    entry.hourly_rate if entry.hourly_rate is not None else "",
                    entry.regular_pay,
                    entry.overtime_pay,
                    entry.double_time_pay,
                    entry.labor_cost,
                    entry.approval_status,
                ]
            )
            minutes["break"] += entry.break_minutes or 0
            minutes["regular"] += entry.regular_minutes or 0
            minutes["overtime"] += entry.overtime_minutes or 0
            minutes["double_time"] += entry.double_time_minutes or 0
            pay["regular"] += entry.regular_pay or ZERO
            pay["overtime"] += entry.overtime_pay or ZERO
            pay["double_time"] += entry.double_time_pay or ZERO
            pay["total"] += entry.labor_cost or ZERO

        writer.writerow(
            [
                "TOTAL",
                "",
                "",
                "",
                "",
                minutes["break"],
                hours(minutes["regular"]),
                hours(minutes["overtime"]),
                hours(minutes["double_time"]),
                "",
                round_to_cents(pay["regular"]),
                round_to_cents(pay["overtime"]),
                round_to_cents(pay["double_time"]),
                round_to_cents(pay["total"]),
                "",
            ]
        )
        return buffer.getvalue()
