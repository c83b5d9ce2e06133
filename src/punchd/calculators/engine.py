"""Shift pricing engine - prices a completed time entry."""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from punchd.calculators.overtime import allocate
from punchd.calculators.periods import sunday_week_start
from punchd.calculators.rate_resolver import RateResolver
from punchd.calculators.types import OvertimeBreakdown, OvertimeSettings
from punchd.models import ApprovalStatus, TimeEntry


def elapsed_minutes(start: datetime, end: datetime) -> int:
    """Whole minutes between two instants, rounded half-up."""
    seconds = Decimal(str((end - start).total_seconds()))
    return int((seconds / 60).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def exceeds_max_shift(start: datetime, end: datetime, max_minutes: int) -> bool:
    """True when the raw (unrounded) span is longer than ``max_minutes``."""
    return end - start > timedelta(minutes=max_minutes)


class ShiftEngine:
    """Computes worked minutes and pay buckets for a finished shift.

    Pricing pipeline:
    1) Worked minutes = elapsed clock time minus accumulated breaks
    2) Minutes already worked this (Sunday-anchored) week before clock-in
    3) Effective hourly rate (entry snapshot, else resolved)
    4) Overtime allocation and per-bucket pay
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.rate_resolver = RateResolver(session)

    async def weekly_minutes_before(
        self,
        company_id: UUID,
        user_id: UUID,
        before: datetime,
        exclude_entry_id: UUID | None = None,
    ) -> int:
        """Worked minutes of completed entries clocked in this week before ``before``.

        Archived and rejected entries do not count toward the weekly threshold.
        """
        stmt = select(func.coalesce(func.sum(TimeEntry.duration_minutes), 0)).where(
            TimeEntry.company_id == company_id,
            TimeEntry.user_id == user_id,
            TimeEntry.clock_out_time.is_not(None),
            TimeEntry.clock_in_time >= sunday_week_start(before),
            TimeEntry.clock_in_time < before,
            TimeEntry.is_archived.is_(False),
            TimeEntry.approval_status != ApprovalStatus.REJECTED.value,
        )
        if exclude_entry_id is not None:
            stmt = stmt.where(TimeEntry.id != exclude_entry_id)
        return int(await self.session.scalar(stmt) or 0)

    async def price_entry(
        self,
        entry: TimeEntry,
        settings: OvertimeSettings,
    ) -> OvertimeBreakdown:
        """Fill the duration, rate and pay-bucket columns of a clocked-out entry."""
        if entry.clock_out_time is None:
            raise ValueError("Cannot price an entry that is still active")

        worked = max(
            elapsed_minutes(entry.clock_in_time, entry.clock_out_time) - (entry.break_minutes or 0),
            0,
        )

        if entry.hourly_rate is None:
            entry.hourly_rate = await self.rate_resolver.resolve(
                entry.company_id, entry.user_id, entry.job_id
            )

        weekly_before = await self.weekly_minutes_before(
            entry.company_id,
            entry.user_id,
            entry.clock_in_time,
            exclude_entry_id=entry.id,
        )
        breakdown = allocate(worked, entry.hourly_rate, settings, weekly_before)

        entry.duration_minutes = worked
        entry.regular_minutes = breakdown.regular_minutes
        entry.overtime_minutes = breakdown.overtime_minutes
        entry.double_time_minutes = breakdown.double_time_minutes
        entry.regular_pay = breakdown.regular_pay
        entry.overtime_pay = breakdown.overtime_pay
        entry.double_time_pay = breakdown.double_time_pay
        entry.labor_cost = breakdown.total_pay
        return breakdown
