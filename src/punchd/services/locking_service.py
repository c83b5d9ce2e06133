"""Entry locking service for pay period lock/unlock."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from punchd.models import ApprovalStatus, PayPeriod, TimeEntry


class LockingService:
    """Service for locking time entries when a pay period closes.

    When a pay period is locked:
    1. Every entry of the company clocked in within the period is marked locked
    2. Each locked entry is stamped with the period's id

    Unlocking clears the lock flag of every entry stamped with the period.
    Both cascades are single bulk updates inside the caller's transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def _covered(self, period: PayPeriod) -> tuple:
        return (
            TimeEntry.company_id == period.company_id,
            TimeEntry.clock_in_time >= period.start_date,
            TimeEntry.clock_in_time <= period.end_date,
        )

    async def count_pending(self, period: PayPeriod) -> int:
        """Count covered entries still waiting for approval."""
        return int(
            await self.session.scalar(
                select(func.count())
                .select_from(TimeEntry)
                .where(
                    *self._covered(period),
                    TimeEntry.approval_status == ApprovalStatus.PENDING.value,
                )
            )
            or 0
        )

    async def count_locked_pending(self, period: PayPeriod) -> int:
        """Count PENDING entries the lock cascade stamped with this period."""
        return int(
            await self.session.scalar(
                select(func.count())
                .select_from(TimeEntry)
                .where(
                    TimeEntry.pay_period_id == period.id,
                    TimeEntry.is_locked.is_(True),
                    TimeEntry.approval_status == ApprovalStatus.PENDING.value,
                )
            )
            or 0
        )

    async def lock_entries_for_period(self, period: PayPeriod, locked_at: datetime) -> int:
        """Lock all covered entries.

        Returns count of locked records.
        """
        result = await self.session.execute(
            update(TimeEntry)
            .where(*self._covered(period))
            .values(is_locked=True, locked_at=locked_at, pay_period_id=period.id)
        )
        return result.rowcount or 0

    async def unlock_entries_for_period(self, period: PayPeriod) -> int:
        """Unlock all entries locked by this period (for owner unlock).

        Returns count of unlocked records.
        """
        result = await self.session.execute(
            update(TimeEntry)
            .where(TimeEntry.pay_period_id == period.id)
            .values(is_locked=False, locked_at=None)
        )
        return result.rowcount or 0

    async def detach_entries(self, period: PayPeriod) -> int:
        """Clear the period back-reference of every entry (period deletion)."""
        result = await self.session.execute(
            update(TimeEntry)
            .where(TimeEntry.pay_period_id == period.id)
            .values(pay_period_id=None, is_locked=False, locked_at=None)
        )
        return result.rowcount or 0

