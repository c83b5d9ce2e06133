"""Time entry approval and administrative editing."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Callable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from punchd.calculators.engine import ShiftEngine, elapsed_minutes, exceeds_max_shift
from punchd.calculators.overtime import round_to_cents
from punchd.calculators.types import ZERO
from punchd.config import Settings, get_settings
from punchd.errors import (
    EntryLocked,
    EntryNotPending,
    EntryStillActive,
    ExcessiveDuration,
    InvalidPeriodRange,
    NotFoundError,
    PunchdError,
    ValidationError,
)
from punchd.models import (
    ApprovalStatus,
    EntryType,
    Job,
    TimeEntry,
    User,
    utcnow,
)
from punchd.services.actor import Actor
from punchd.services.audit_service import AuditService
from punchd.services.export_service import hours
from punchd.services.settings_service import SettingsService

logger = logging.getLogger(__name__)

MANUAL_ENTRY_PREFIX = "[Manual Entry]"


@dataclass
class BulkResult:
    """Outcome of a bulk approve/reject: one error string per failed id."""

    succeeded: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ApprovalStats:
    pending: int
    approved: int
    rejected: int


@dataclass
class OvertimeTotals:
    regular_minutes: int = 0
    overtime_minutes: int = 0
    double_time_minutes: int = 0
    regular_pay: Decimal = ZERO
    overtime_pay: Decimal = ZERO
    double_time_pay: Decimal = ZERO
    total_pay: Decimal = ZERO

    def add(self, entry: TimeEntry) -> None:
        self.regular_minutes += entry.regular_minutes or 0
        self.overtime_minutes += entry.overtime_minutes or 0
        self.double_time_minutes += entry.double_time_minutes or 0
        self.regular_pay += entry.regular_pay or ZERO
        self.overtime_pay += entry.overtime_pay or ZERO
        self.double_time_pay += entry.double_time_pay or ZERO
        self.total_pay += entry.labor_cost or ZERO

    @property
    def regular_hours(self) -> Decimal:
        return hours(self.regular_minutes)

    @property
    def overtime_hours(self) -> Decimal:
        return hours(self.overtime_minutes)

    @property
    def double_time_hours(self) -> Decimal:
        return hours(self.double_time_minutes)


@dataclass
class WorkerOvertime:
    user_id: UUID
    name: str
    totals: OvertimeTotals = field(default_factory=OvertimeTotals)


@dataclass
class OvertimeSummary:
    """Overtime totals over a date range, overall and per worker."""

    totals: OvertimeTotals
    by_worker: list[WorkerOvertime]
    entry_count: int


class ApprovalService:
    """Service for manager-side time entry operations.

    Operations:
    - approve_entry / reject_entry: PENDING → APPROVED | REJECTED
    - bulk_approve / bulk_reject: per-entry outcome, never all-or-nothing
    - create_manual_entry: back-dated, pre-approved entry
    - update_entry: correct times, breaks or notes and re-price
    - list_pending_approvals / approval_stats / overtime_summary: reporting

    Locked entries (closed pay period) are never modified.
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
        self.engine = ShiftEngine(session)
        self.settings_service = SettingsService(session, audit)

    # ===== Approval =====

    async def approve_entry(self, actor: Actor, entry_id: UUID) -> TimeEntry:
        actor.require_manager("approve time entries")
        entry = await self._get_entry(actor, entry_id)
        self._require_pending(entry)
        if entry.is_active:
            raise EntryStillActive(entry.id)

        entry.approval_status = ApprovalStatus.APPROVED.value
        entry.approved_by_id = actor.user_id
        entry.approved_at = self.now()
        entry.rejection_reason = None
        await self.session.flush()

        await self.audit.record(
            actor.company_id,
            actor.user_id,
            "TIME_ENTRY_APPROVED",
            "TimeEntry",
            entry.id,
            {
                "worker_id": entry.user_id,
                "duration_minutes": entry.duration_minutes,
                "labor_cost": entry.labor_cost,
            },
        )
        return entry

    async def reject_entry(
        self, actor: Actor, entry_id: UUID, reason: str | None = None
    ) -> TimeEntry:
        actor.require_manager("reject time entries")
        entry = await self._get_entry(actor, entry_id)
        self._require_pending(entry)

        entry.approval_status = ApprovalStatus.REJECTED.value
        entry.approved_by_id = actor.user_id
        entry.approved_at = self.now()
        entry.rejection_reason = reason or "No reason provided"
        await self.session.flush()

        await self.audit.record(
            actor.company_id,
            actor.user_id,
            "TIME_ENTRY_REJECTED",
            "TimeEntry",
            entry.id,
            {
                "worker_id": entry.user_id,
                "duration_minutes": entry.duration_minutes,
                "rejection_reason": entry.rejection_reason,
            },
        )
        return entry

    async def bulk_approve(self, actor: Actor, entry_ids: list[UUID]) -> BulkResult:
        actor.require_manager("approve time entries")
        result = BulkResult()
        for entry_id in entry_ids:
            try:
                await self.approve_entry(actor, entry_id)
                result.succeeded += 1
            except PunchdError as exc:
                result.failed += 1
                result.errors.append(f"{entry_id}: {exc.message}")
        return result

    async def bulk_reject(
        self, actor: Actor, entry_ids: list[UUID], reason: str | None = None
    ) -> BulkResult:
        actor.require_manager("reject time entries")
        result = BulkResult()
        for entry_id in entry_ids:
            try:
                await self.reject_entry(actor, entry_id, reason)
                result.succeeded += 1
            except PunchdError as exc:
                result.failed += 1
                result.errors.append(f"{entry_id}: {exc.message}")
        return result

    def _require_pending(self, entry: TimeEntry) -> None:
        if entry.is_locked:
            raise EntryLocked(entry.id)
        if entry.approval_status != ApprovalStatus.PENDING.value:
            raise EntryNotPending(entry.id, entry.approval_status)

    # ===== Manual entry and edits =====

    async def create_manual_entry(
        self,
        actor: Actor,
        worker_id: UUID,
        job_id: UUID,
        work_date: date,
        clock_in_time: time,
        clock_out_time: time,
        break_minutes: int = 0,
        notes: str | None = None,
    ) -> TimeEntry:
        """Record a back-dated, pre-approved entry on behalf of a worker.

        A clock-out time at or before the clock-in time is an overnight
        shift ending the next day. Times are interpreted in UTC.
        """
        actor.require_manager("create manual time entries")
        if break_minutes < 0:
            raise ValidationError("Break minutes cannot be negative", break_minutes=break_minutes)

        worker = await self.session.scalar(
            select(User).where(User.id == worker_id, User.company_id == actor.company_id)
        )
        if worker is None:
            raise NotFoundError("User", worker_id)
        job = await self.session.scalar(
            select(Job).where(Job.id == job_id, Job.company_id == actor.company_id)
        )
        if job is None:
            raise NotFoundError("Job", job_id)

        start = datetime.combine(work_date, clock_in_time, tzinfo=timezone.utc)
        end = datetime.combine(work_date, clock_out_time, tzinfo=timezone.utc)
        if end <= start:
            end += timedelta(days=1)

        now = self.now()
        entry = TimeEntry(
            company_id=actor.company_id,
            user_id=worker.id,
            job_id=job.id,
            entry_type=EntryType.JOB_TIME.value,
            worker_type=worker.worker_type,
            clock_in_time=start,
            clock_out_time=end,
            break_minutes=break_minutes,
            notes=f"{MANUAL_ENTRY_PREFIX} {notes}" if notes else MANUAL_ENTRY_PREFIX,
            is_manual=True,
            approval_status=ApprovalStatus.APPROVED.value,
            approved_by_id=actor.user_id,
            approved_at=now,
        )
        await self._price(actor, entry)
        self.session.add(entry)
        await self.session.flush()

        await self.audit.record(
            actor.company_id,
            actor.user_id,
            "TIME_ENTRY_APPROVED",
            "TimeEntry",
            entry.id,
            {
                "type": "manual_entry",
                "worker_id": worker.id,
                "job_id": job.id,
                "duration_minutes": entry.duration_minutes,
                "labor_cost": entry.labor_cost,
            },
        )
        logger.info("Manual entry %s created for user %s", entry.id, worker.id)
        return entry

    async def update_entry(
        self,
        actor: Actor,
        entry_id: UUID,
        clock_in_time: datetime | None = None,
        clock_out_time: datetime | None = None,
        break_minutes: int | None = None,
        notes: str | None = None,
    ) -> TimeEntry:
        """Correct an entry's times, breaks or notes; completed entries are re-priced.

        Setting a clock-out on an open entry closes it.

        Raises:
            EntryLocked: the entry belongs to a locked pay period.
        """
        actor.require_manager("edit time entries")
        entry = await self._get_entry(actor, entry_id)
        if entry.is_locked:
            raise EntryLocked(entry.id)

        if break_minutes is not None and break_minutes < 0:
            raise ValidationError("Break minutes cannot be negative", break_minutes=break_minutes)
        new_in = _utc(clock_in_time) if clock_in_time is not None else entry.clock_in_time
        new_out = _utc(clock_out_time) if clock_out_time is not None else entry.clock_out_time
        if new_out is not None and new_out <= new_in:
            raise InvalidPeriodRange(
                "Clock-out must be after clock-in",
                clock_in_time=new_in,
                clock_out_time=new_out,
            )

        before = {
            "clock_in_time": entry.clock_in_time,
            "clock_out_time": entry.clock_out_time,
            "break_minutes": entry.break_minutes,
        }
        entry.clock_in_time = new_in
        if clock_out_time is not None:
            entry.clock_out_time = new_out
            entry.is_on_break = False
        if break_minutes is not None:
            entry.break_minutes = break_minutes
        if notes is not None:
            entry.notes = notes

        if entry.clock_out_time is not None:
            await self._price(actor, entry)
        await self.session.flush()

        await self.audit.record(
            actor.company_id,
            actor.user_id,
            "TIME_ENTRY_UPDATED",
            "TimeEntry",
            entry.id,
            {
                "before": before,
                "after": {
                    "clock_in_time": entry.clock_in_time,
                    "clock_out_time": entry.clock_out_time,
                    "break_minutes": entry.break_minutes,
                },
            },
        )
        return entry

    async def _price(self, actor: Actor, entry: TimeEntry) -> None:
        max_minutes = self.settings.max_shift_minutes
        if exceeds_max_shift(entry.clock_in_time, entry.clock_out_time, max_minutes):
            elapsed = elapsed_minutes(entry.clock_in_time, entry.clock_out_time)
            raise ExcessiveDuration(elapsed, max_minutes)
        overtime = await self.settings_service.get_overtime_settings(actor.company_id)
        await self.engine.price_entry(entry, overtime)

    # ===== Reporting =====

    async def list_pending_approvals(self, actor: Actor) -> list[TimeEntry]:
        """Completed entries awaiting approval, newest first."""
        actor.require_manager("view pending approvals")
        result = await self.session.execute(
            select(TimeEntry)
            .where(
                TimeEntry.company_id == actor.company_id,
                TimeEntry.approval_status == ApprovalStatus.PENDING.value,
                TimeEntry.clock_out_time.is_not(None),
            )
            .order_by(TimeEntry.clock_in_time.desc())
        )
        return list(result.scalars().all())

    async def approval_stats(self, actor: Actor) -> ApprovalStats:
        actor.require_manager("view approval stats")
        rows = await self.session.execute(
            select(TimeEntry.approval_status, func.count())
            .where(
                TimeEntry.company_id == actor.company_id,
                # Open sessions are not yet awaiting approval
                TimeEntry.clock_out_time.is_not(None),
            )
            .group_by(TimeEntry.approval_status)
        )
        counts = dict(rows.all())
        return ApprovalStats(
            pending=counts.get(ApprovalStatus.PENDING.value, 0),
            approved=counts.get(ApprovalStatus.APPROVED.value, 0),
            rejected=counts.get(ApprovalStatus.REJECTED.value, 0),
        )

    async def overtime_summary(
        self,
        actor: Actor,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> OvertimeSummary:
        actor.require_manager("view overtime")
        stmt = (
            select(TimeEntry, User.name)
            .join(User, User.id == TimeEntry.user_id)
            .where(
                TimeEntry.company_id == actor.company_id,
                TimeEntry.clock_out_time.is_not(None),
            )
        )
        if start is not None:
            stmt = stmt.where(TimeEntry.clock_in_time >= start)
        if end is not None:
            stmt = stmt.where(TimeEntry.clock_in_time <= end)
        result = await self.session.execute(stmt.order_by(User.name, TimeEntry.clock_in_time))

        totals = OvertimeTotals()
        by_worker: dict[UUID, WorkerOvertime] = {}
        count = 0
        for entry, name in result.all():
            count += 1
            totals.add(entry)
            by_worker.setdefault(
                entry.user_id, WorkerOvertime(user_id=entry.user_id, name=name)
            ).totals.add(entry)

        for bucket in [totals, *(w.totals for w in by_worker.values())]:
            bucket.regular_pay = round_to_cents(bucket.regular_pay)
            bucket.overtime_pay = round_to_cents(bucket.overtime_pay)
            bucket.double_time_pay = round_to_cents(bucket.double_time_pay)
            bucket.total_pay = round_to_cents(bucket.total_pay)

        return OvertimeSummary(
            totals=totals, by_worker=list(by_worker.values()), entry_count=count
        )

    async def _get_entry(self, actor: Actor, entry_id: UUID) -> TimeEntry:
        entry = await self.session.scalar(
            select(TimeEntry).where(
                TimeEntry.id == entry_id,
                TimeEntry.company_id == actor.company_id,
            )
        )
        if entry is None:
            raise NotFoundError("TimeEntry", entry_id)
        return entry


def _utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
