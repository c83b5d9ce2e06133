"""Pay period service - lifecycle of company accounting windows."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Callable
from uuid import UUID, uuid4

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from punchd.calculators.overtime import round_to_cents
from punchd.calculators.periods import compute_period_for_schedule, window_for_days
from punchd.calculators.types import ZERO
from punchd.config import Settings, get_settings
from punchd.database import conditional_insert
from punchd.errors import (
    AlreadyLocked,
    InvalidPeriodRange,
    InvalidReason,
    NotFoundError,
    NotLocked,
    OverlappingPeriod,
    PendingApprovals,
    PeriodNotOpen,
)
from punchd.models import ApprovalStatus, PayPeriod, PayPeriodStatus, TimeEntry, User, utcnow
from punchd.services.actor import Actor
from punchd.services.audit_service import AuditService
from punchd.services.export_service import ExportService
from punchd.services.locking_service import LockingService
from punchd.services.settings_service import SettingsService
from punchd.services.state_machine import PayPeriodStateMachine

logger = logging.getLogger(__name__)


@dataclass
class PeriodTotals:
    """Minute and cost totals over a set of entries."""

    entry_count: int = 0
    pending_count: int = 0
    approved_count: int = 0
    total_minutes: int = 0
    regular_minutes: int = 0
    overtime_minutes: int = 0
    double_time_minutes: int = 0
    labor_cost: Decimal = ZERO

    def add(self, entry: TimeEntry) -> None:
        self.entry_count += 1
        if entry.approval_status == ApprovalStatus.PENDING.value:
            self.pending_count += 1
        elif entry.approval_status == ApprovalStatus.APPROVED.value:
            self.approved_count += 1
        self.total_minutes += entry.duration_minutes or 0
        self.regular_minutes += entry.regular_minutes or 0
        self.overtime_minutes += entry.overtime_minutes or 0
        self.double_time_minutes += entry.double_time_minutes or 0
        self.labor_cost += entry.labor_cost or ZERO


@dataclass
class WorkerPeriodTotals:
    """One worker's entries and totals within a period."""

    user_id: UUID
    name: str
    entries: list[TimeEntry] = field(default_factory=list)
    totals: PeriodTotals = field(default_factory=PeriodTotals)


@dataclass
class PeriodSummary:
    """A period with its entry totals (list view)."""

    period: PayPeriod
    totals: PeriodTotals


@dataclass
class PeriodDetails:
    """A period with its entries grouped per worker (detail view)."""

    period: PayPeriod
    entries: list[TimeEntry]
    by_worker: list[WorkerPeriodTotals]
    summary: PeriodTotals


class PayPeriodService:
    """Service for managing pay period lifecycle.

    Operations:
    - ensure_current_period: idempotently create the period covering now
    - create_period / delete_period: manual periods
    - lock_period: OPEN → LOCKED, cascading locks to covered entries
    - unlock_period: LOCKED/EXPORTED → OPEN (owner only, with reason)
    - mark_exported: LOCKED → EXPORTED
    - get_period_details / export_period_csv: reporting

    Status changes are compare-and-swap updates on the status column; the
    entry cascade runs in the same transaction.
    """

    def __init__(
        self,
        session: AsyncSession,
        audit: AuditService,
        settings: Settings | None = None,
        now: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.audit = audit
        self.settings = settings or get_settings()
        self.now = now
        self.locking_service = LockingService(session)
        self.export_service = ExportService(session)
        self.settings_service = SettingsService(session, audit)

    # ===== Reads =====

    async def get_period(self, actor: Actor, period_id: UUID) -> PayPeriod:
        period = await self.session.scalar(
            select(PayPeriod).where(
                PayPeriod.id == period_id,
                PayPeriod.company_id == actor.company_id,
            )
        )
        if period is None:
            raise NotFoundError("PayPeriod", period_id)
        return period

    async def list_periods(
        self,
        actor: Actor,
        status: PayPeriodStatus | str | None = None,
        limit: int = 52,
    ) -> list[PeriodSummary]:
        """Most recent periods first, each with entry totals."""
        actor.require_manager("view pay periods")

        stmt = select(PayPeriod).where(PayPeriod.company_id == actor.company_id)
        if status is not None:
            stmt = stmt.where(PayPeriod.status == PayPeriodStatus(status).value)
        result = await self.session.execute(
            stmt.order_by(PayPeriod.start_date.desc()).limit(limit)
        )
        return [
            PeriodSummary(period=period, totals=await self._totals(period))
            for period in result.scalars().all()
        ]

    async def _totals(self, period: PayPeriod) -> PeriodTotals:
        pending = case((TimeEntry.approval_status == ApprovalStatus.PENDING.value, 1), else_=0)
        approved = case((TimeEntry.approval_status == ApprovalStatus.APPROVED.value, 1), else_=0)
        row = (
            await self.session.execute(
                select(
                    func.count(TimeEntry.id),
                    func.coalesce(func.sum(pending), 0),
                    func.coalesce(func.sum(approved), 0),
                    func.coalesce(func.sum(TimeEntry.duration_minutes), 0),
                    func.coalesce(func.sum(TimeEntry.regular_minutes), 0),
                    func.coalesce(func.sum(TimeEntry.overtime_minutes), 0),
                    func.coalesce(func.sum(TimeEntry.double_time_minutes), 0),
                    func.coalesce(func.sum(TimeEntry.labor_cost), 0),
                ).where(
                    TimeEntry.company_id == period.company_id,
                    TimeEntry.clock_in_time >= period.start_date,
                    TimeEntry.clock_in_time <= period.end_date,
                )
            )
        ).one()
        return PeriodTotals(
            entry_count=int(row[0]),
            pending_count=int(row[1]),
            approved_count=int(row[2]),
            total_minutes=int(row[3]),
            regular_minutes=int(row[4]),
            overtime_minutes=int(row[5]),
            double_time_minutes=int(row[6]),
            labor_cost=round_to_cents(Decimal(str(row[7]))),
        )

    async def get_period_details(self, actor: Actor, period_id: UUID) -> PeriodDetails:
        """Covered entries grouped per worker, with per-worker and overall totals."""
        actor.require_manager("view pay period details")
        period = await self.get_period(actor, period_id)

        result = await self.session.execute(
            select(TimeEntry, User.name)
            .join(User, User.id == TimeEntry.user_id)
            .where(
                TimeEntry.company_id == period.company_id,
                TimeEntry.clock_in_time >= period.start_date,
                TimeEntry.clock_in_time <= period.end_date,
            )
            .order_by(TimeEntry.clock_in_time)
        )

        entries: list[TimeEntry] = []
        by_worker: dict[UUID, WorkerPeriodTotals] = {}
        summary = PeriodTotals()
        for entry, name in result.all():
            entries.append(entry)
            summary.add(entry)
            group = by_worker.setdefault(
                entry.user_id, WorkerPeriodTotals(user_id=entry.user_id, name=name)
            )
            group.entries.append(entry)
            group.totals.add(entry)

        return PeriodDetails(
            period=period,
            entries=entries,
            by_worker=list(by_worker.values()),
            summary=summary,
        )

    # ===== Creation =====

    async def ensure_current_period(self, company_id: UUID) -> PayPeriod | None:
        """Return the period covering now, creating it from the schedule if absent.

        Returns None when the company has no recurrence rule. Concurrent
        callers converge on one row through the (company, start, end)
        unique constraint.
        """
        now = self.now()
        existing = await self.session.scalar(
            select(PayPeriod)
            .where(
                PayPeriod.company_id == company_id,
                PayPeriod.start_date <= now,
                PayPeriod.end_date >= now,
            )
            .order_by(PayPeriod.start_date.desc())
            .limit(1)
        )
        if existing is not None:
            return existing

        schedule = await self.settings_service.get_pay_period_schedule(company_id)
        if schedule is None:
            return None

        window = compute_period_for_schedule(schedule, now)
        table = PayPeriod.__table__
        stmt = (
            conditional_insert(self.session, table)
            .values(
                id=uuid4(),
                company_id=company_id,
                start_date=window.start,
                end_date=window.end,
                status=PayPeriodStatus.OPEN.value,
                auto_generated=True,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["company_id", "start_date", "end_date"])
            .returning(table.c.id)
        )
        inserted_id = (await self.session.execute(stmt)).scalar_one_or_none()

        result = await self.session.execute(
            select(PayPeriod).where(
                PayPeriod.company_id == company_id,
                PayPeriod.start_date == window.start,
                PayPeriod.end_date == window.end,
            )
        )
        period = result.scalar_one()

        if inserted_id is not None:
            await self.audit.record(
                company_id,
                None,
                "PAY_PERIOD_CREATED",
                "PayPeriod",
                period.id,
                {"start_date": window.start, "end_date": window.end, "auto_generated": True},
            )
            logger.info(
                "Auto-created %s pay period %s for company %s (%s to %s)",
                schedule.period_type,
                period.id,
                company_id,
                window.start_day,
                window.end_day,
            )
        return period

    async def create_period(self, actor: Actor, start_date: date, end_date: date) -> PayPeriod:
        """Create a manual period covering whole days from start_date to end_date.

        Raises:
            InvalidPeriodRange: start is not before end.
            OverlappingPeriod: another period of the company intersects it.
        """
        actor.require_manager("create pay periods")
        if start_date >= end_date:
            raise InvalidPeriodRange(
                "Start date must be before end date",
                start_date=start_date,
                end_date=end_date,
            )

        window = window_for_days(start_date, end_date)
        overlapping = await self.session.scalar(
            select(PayPeriod.id)
            .where(
                PayPeriod.company_id == actor.company_id,
                PayPeriod.start_date <= window.end,
                PayPeriod.end_date >= window.start,
            )
            .limit(1)
        )
        if overlapping is not None:
            raise OverlappingPeriod(overlapping)

        period = PayPeriod(
            company_id=actor.company_id,
            start_date=window.start,
            end_date=window.end,
            status=PayPeriodStatus.OPEN.value,
            auto_generated=False,
        )
        self.session.add(period)
        await self.session.flush()

        await self.audit.record(
            actor.company_id,
            actor.user_id,
            "PAY_PERIOD_CREATED",
            "PayPeriod",
            period.id,
            {"start_date": window.start, "end_date": window.end, "auto_generated": False},
        )
        return period

    # ===== Status transitions =====

    async def lock_period(self, actor: Actor, period_id: UUID) -> PayPeriod:
        """Lock an OPEN period and every entry clocked in within it.

        Raises:
            AlreadyLocked: the period is not OPEN.
            PendingApprovals: covered entries still await approval. When
                found before the cascade nothing is mutated; when found
                after it, the caller's rollback undoes the cascade.
        """
        actor.require_manager("lock pay periods")
        period = await self.get_period(actor, period_id)
        if not PayPeriodStateMachine.can_transition(period.status, PayPeriodStatus.LOCKED):
            raise AlreadyLocked(period.status)

        pending = await self.locking_service.count_pending(period)
        if pending:
            raise PendingApprovals(pending)

        now = self.now()
        await self._swap_status(
            period,
            expected=PayPeriodStatus.OPEN,
            values={
                "status": PayPeriodStatus.LOCKED.value,
                "locked_at": now,
                "locked_by_id": actor.user_id,
            },
            error=lambda current: AlreadyLocked(current),
        )
        locked = await self.locking_service.lock_entries_for_period(period, now)
        # Entries clocked in after the first count were swept up by the cascade
        late = await self.locking_service.count_locked_pending(period)
        if late:
            logger.warning(
                "Lock of pay period %s aborted: %s entries became pending", period.id, late
            )
            raise PendingApprovals(late)

        await self.audit.record(
            actor.company_id,
            actor.user_id,
            "PAY_PERIOD_LOCKED",
            "PayPeriod",
            period.id,
            {"start_date": period.start_date, "end_date": period.end_date, "entries_locked": locked},
        )
        logger.info("Pay period %s locked (%s entries)", period.id, locked)
        return period

    async def unlock_period(self, actor: Actor, period_id: UUID, reason: str) -> PayPeriod:
        """Reopen a LOCKED or EXPORTED period (owner override).

        The override actor, time and reason stay on the period after any
        later lock.

        Raises:
            Forbidden: the actor is not an owner.
            InvalidReason: reason shorter than the configured minimum.
            NotLocked: the period is already OPEN.
        """
        actor.require_owner("unlock pay periods")
        min_length = self.settings.unlock_reason_min_length
        reason = (reason or "").strip()
        if len(reason) < min_length:
            raise InvalidReason(min_length)

        period = await self.get_period(actor, period_id)
        from_status = period.status
        if not PayPeriodStateMachine.is_unlock(from_status, PayPeriodStatus.OPEN):
            raise NotLocked(from_status, PayPeriodStatus.OPEN.value)

        await self._swap_status(
            period,
            expected=from_status,
            values={
                "status": PayPeriodStatus.OPEN.value,
                "override_at": self.now(),
                "override_by_id": actor.user_id,
                "override_reason": reason,
            },
            error=lambda current: NotLocked(current, PayPeriodStatus.OPEN.value),
        )
        unlocked = await self.locking_service.unlock_entries_for_period(period)

        await self.audit.record(
            actor.company_id,
            actor.user_id,
            "PAY_PERIOD_UNLOCKED",
            "PayPeriod",
            period.id,
            {
                "previous_status": from_status,
                "reason": reason,
                "entries_unlocked": unlocked,
            },
        )
        logger.warning(
            "Pay period %s unlocked by owner %s: %s", period.id, actor.user_id, reason
        )
        return period

    async def mark_exported(self, actor: Actor, period_id: UUID) -> PayPeriod:
        """LOCKED → EXPORTED. Entry locks are left untouched."""
        actor.require_manager("export pay periods")
        period = await self.get_period(actor, period_id)
        if not PayPeriodStateMachine.can_transition(period.status, PayPeriodStatus.EXPORTED):
            raise NotLocked(period.status, PayPeriodStatus.EXPORTED.value)

        await self._swap_status(
            period,
            expected=PayPeriodStatus.LOCKED,
            values={
                "status": PayPeriodStatus.EXPORTED.value,
                "exported_at": self.now(),
                "exported_by_id": actor.user_id,
            },
            error=lambda current: NotLocked(current, PayPeriodStatus.EXPORTED.value),
        )

        await self.audit.record(
            actor.company_id,
            actor.user_id,
            "PAY_PERIOD_EXPORTED",
            "PayPeriod",
            period.id,
            {"start_date": period.start_date, "end_date": period.end_date},
        )
        logger.info("Pay period %s marked exported", period.id)
        return period

    async def delete_period(self, actor: Actor, period_id: UUID) -> None:
        """Delete an OPEN period, unlinking (never deleting) its entries."""
        actor.require_owner("delete pay periods")
        period = await self.get_period(actor, period_id)
        if period.status != PayPeriodStatus.OPEN.value:
            raise PeriodNotOpen(period.status, "DELETED")

        detached = await self.locking_service.detach_entries(period)
        await self.session.delete(period)
        await self.session.flush()

        await self.audit.record(
            actor.company_id,
            actor.user_id,
            "PAY_PERIOD_DELETED",
            "PayPeriod",
            period_id,
            {
                "start_date": period.start_date,
                "end_date": period.end_date,
                "entries_unlinked": detached,
            },
        )

    async def export_period_csv(self, actor: Actor, period_id: UUID) -> tuple[str, str]:
        """Render the payroll spreadsheet of a closed period.

        Returns (filename, csv_text).
        """
        actor.require_manager("export pay periods")
        period = await self.get_period(actor, period_id)
        if period.status not in PayPeriodStateMachine.ENTRIES_LOCKED:
            raise NotLocked(period.status, PayPeriodStatus.EXPORTED.value)

        rows = await self.export_service.period_rows(period)
        return self.export_service.filename(period), self.export_service.render_csv(rows)

    async def _swap_status(
        self,
        period: PayPeriod,
        expected: PayPeriodStatus | str,
        values: dict,
        error: Callable[[str], Exception],
    ) -> None:
        """Apply ``values`` only if the period still has ``expected`` status."""
        expected_value = PayPeriodStatus(expected).value
        result = await self.session.execute(
            update(PayPeriod)
            .where(PayPeriod.id == period.id, PayPeriod.status == expected_value)
            .values(updated_at=self.now(), **values)
        )
        if not result.rowcount:
            await self.session.refresh(period)
            raise error(period.status)
        await self.session.refresh(period)
