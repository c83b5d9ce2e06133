"""Timesheet service - worker-curated bundles of completed entries."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from punchd.calculators.periods import day_end, day_start, window_for_days
from punchd.errors import (
    EmptyTimesheet,
    Forbidden,
    InvalidPeriodRange,
    NoEligibleEntries,
    NotDraft,
    NotEditable,
    NotFoundError,
    NotSubmitted,
    PartialSelection,
    ValidationError,
)
from punchd.models import ApprovalStatus, TimeEntry, Timesheet, TimesheetStatus, utcnow
from punchd.services.actor import Actor
from punchd.services.audit_service import AuditService
from punchd.services.state_machine import TimesheetStateMachine

logger = logging.getLogger(__name__)


@dataclass
class TimesheetWithEntries:
    """A timesheet and the entries currently linked to it."""

    timesheet: Timesheet
    entries: list[TimeEntry]


class TimesheetService:
    """Service for timesheet lifecycle.

    Transitions:
    - create: link eligible entries to a new DRAFT
    - update: replace the entry set of a DRAFT
    - submit: DRAFT → SUBMITTED
    - withdraw: SUBMITTED → DRAFT
    - review: SUBMITTED → APPROVED (cascades approval) | REJECTED (unlinks entries)
    - delete: DRAFT only, unlinks entries

    An entry is eligible when it belongs to the worker, is clocked out,
    unarchived, unlocked and not linked to any timesheet. Linking is a
    conditional bulk update on those same criteria, so two requests can
    never claim the same entry.
    """

    def __init__(
        self,
        session: AsyncSession,
        audit: AuditService,
        now: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.audit = audit
        self.now = now

    # ===== Reads =====

    async def get_timesheet(self, actor: Actor, timesheet_id: UUID) -> TimesheetWithEntries:
        """Load a timesheet with entries. Workers may only read their own."""
        timesheet = await self._get(actor, timesheet_id)
        if not actor.can_view_worker(timesheet.user_id):
            raise Forbidden("Access denied")
        return (await self._with_entries([timesheet]))[0]

    async def list_my_timesheets(self, actor: Actor) -> list[TimesheetWithEntries]:
        result = await self.session.execute(
            select(Timesheet)
            .where(
                Timesheet.company_id == actor.company_id,
                Timesheet.user_id == actor.user_id,
            )
            .order_by(Timesheet.period_start.desc())
        )
        return await self._with_entries(result.scalars().all())

    async def list_pending_timesheets(self, actor: Actor) -> list[TimesheetWithEntries]:
        """Submitted timesheets of the company, oldest submission first."""
        actor.require_manager("review timesheets")
        result = await self.session.execute(
            select(Timesheet)
            .where(
                Timesheet.company_id == actor.company_id,
                Timesheet.status == TimesheetStatus.SUBMITTED.value,
            )
            .order_by(Timesheet.submitted_at.asc())
        )
        return await self._with_entries(result.scalars().all())

    async def list_unsubmitted_entries(
        self,
        actor: Actor,
        start: date | None = None,
        end: date | None = None,
        worker_type: str | None = None,
    ) -> list[TimeEntry]:
        """The worker's entries that can still go into a timesheet, newest first."""
        stmt = select(TimeEntry).where(*self._eligible(actor))
        if worker_type is not None:
            stmt = stmt.where(TimeEntry.worker_type == worker_type)
        if start is not None:
            stmt = stmt.where(TimeEntry.clock_in_time >= day_start(start))
        if end is not None:
            stmt = stmt.where(TimeEntry.clock_in_time <= day_end(end))
        result = await self.session.execute(stmt.order_by(TimeEntry.clock_in_time.desc()))
        return list(result.scalars().all())

    # ===== Draft editing =====

    async def create_timesheet(
        self,
        actor: Actor,
        entry_ids: list[UUID] | None = None,
        start: date | None = None,
        end: date | None = None,
        name: str | None = None,
    ) -> TimesheetWithEntries:
        """Create a DRAFT from explicit entry ids, or from every eligible entry in a date range.

        Raises:
            PartialSelection: an explicit id is not eligible. Nothing is created.
            NoEligibleEntries: the selection is empty.
        """
        if entry_ids:
            requested = set(entry_ids)
            entries = await self._load_eligible(actor, requested)
            missing = requested - {e.id for e in entries}
            if missing:
                raise PartialSelection(list(missing))
        elif start is not None and end is not None:
            if start > end:
                raise InvalidPeriodRange(
                    "Start date must not be after end date", start_date=start, end_date=end
                )
            window = window_for_days(start, end)
            result = await self.session.execute(
                select(TimeEntry).where(
                    *self._eligible(actor),
                    TimeEntry.clock_in_time >= window.start,
                    TimeEntry.clock_in_time <= window.end,
                )
            )
            entries = list(result.scalars().all())
        else:
            entries = []

        if not entries:
            raise NoEligibleEntries()

        timesheet = Timesheet(
            company_id=actor.company_id,
            user_id=actor.user_id,
            name=name or None,
            status=TimesheetStatus.DRAFT.value,
        )
        _apply_totals(timesheet, entries)
        self.session.add(timesheet)
        await self.session.flush()

        await self._link(actor, timesheet, [e.id for e in entries])
        logger.info(
            "Timesheet %s created by user %s with %s entries",
            timesheet.id,
            actor.user_id,
            len(entries),
        )
        return TimesheetWithEntries(timesheet=timesheet, entries=_by_clock_in(entries))

    async def update_timesheet(
        self,
        actor: Actor,
        timesheet_id: UUID,
        entry_ids: list[UUID] | None = None,
        name: str | None = None,
    ) -> TimesheetWithEntries:
        """Replace the entry set and/or rename a DRAFT; totals and period are recomputed."""
        timesheet = await self._get_own(actor, timesheet_id)
        if not TimesheetStateMachine.can_modify_entries(timesheet.status):
            raise NotEditable(timesheet.status)

        if name is not None:
            timesheet.name = name or None

        if entry_ids is not None:
            current = set(
                (
                    await self.session.execute(
                        select(TimeEntry.id).where(TimeEntry.timesheet_id == timesheet.id)
                    )
                ).scalars()
            )
            wanted = set(entry_ids)
            added = wanted - current
            removed = current - wanted

            if added:
                eligible = await self._load_eligible(actor, added)
                missing = added - {e.id for e in eligible}
                if missing:
                    raise PartialSelection(list(missing))

            if removed:
                await self.session.execute(
                    update(TimeEntry)
                    .where(TimeEntry.id.in_(removed), TimeEntry.timesheet_id == timesheet.id)
                    .values(timesheet_id=None)
                )
            if added:
                await self._link(actor, timesheet, list(added))

            linked = await self._linked_entries(timesheet.id)
            if linked:
                _apply_totals(timesheet, linked)
            else:
                timesheet.total_minutes = 0
                timesheet.total_break_minutes = 0

        await self.session.flush()
        return (await self._with_entries([timesheet]))[0]

    async def delete_timesheet(self, actor: Actor, timesheet_id: UUID) -> None:
        timesheet = await self._get_own(actor, timesheet_id)
        if timesheet.status != TimesheetStatus.DRAFT.value:
            raise NotDraft(timesheet.status, "DELETED")

        await self._unlink_all(timesheet.id)
        await self.session.delete(timesheet)
        await self.session.flush()

    # ===== Status transitions =====

    async def submit_timesheet(self, actor: Actor, timesheet_id: UUID) -> Timesheet:
        timesheet = await self._get_own(actor, timesheet_id)
        if not TimesheetStateMachine.can_transition(timesheet.status, TimesheetStatus.SUBMITTED):
            raise NotDraft(timesheet.status, TimesheetStatus.SUBMITTED.value)

        linked = await self.session.scalar(
            select(func.count()).select_from(TimeEntry).where(TimeEntry.timesheet_id == timesheet.id)
        )
        if not linked:
            raise EmptyTimesheet()

        timesheet.status = TimesheetStatus.SUBMITTED.value
        timesheet.submitted_at = self.now()
        await self.session.flush()
        logger.info("Timesheet %s submitted", timesheet.id)
        return timesheet

    async def withdraw_timesheet(self, actor: Actor, timesheet_id: UUID) -> Timesheet:
        timesheet = await self._get_own(actor, timesheet_id)
        if timesheet.status != TimesheetStatus.SUBMITTED.value:
            raise NotSubmitted(timesheet.status, TimesheetStatus.DRAFT.value)

        timesheet.status = TimesheetStatus.DRAFT.value
        timesheet.submitted_at = None
        await self.session.flush()
        return timesheet

    async def review_timesheet(
        self,
        actor: Actor,
        timesheet_id: UUID,
        status: TimesheetStatus | str,
        notes: str | None = None,
    ) -> TimesheetWithEntries:
        """Approve or reject a SUBMITTED timesheet.

        Approval stamps every linked, unlocked entry APPROVED. Rejection
        unlinks every entry so it can go into a new draft.
        """
        actor.require_manager("review timesheets")
        decision = TimesheetStatus(status)
        if not TimesheetStateMachine.is_review(decision):
            raise ValidationError(
                "Review status must be APPROVED or REJECTED", status=decision.value
            )

        timesheet = await self._get(actor, timesheet_id)
        if timesheet.status != TimesheetStatus.SUBMITTED.value:
            raise NotSubmitted(timesheet.status, decision.value)

        now = self.now()
        timesheet.status = decision.value
        timesheet.reviewed_at = now
        timesheet.reviewed_by_id = actor.user_id
        timesheet.review_notes = notes

        if decision == TimesheetStatus.APPROVED:
            result = await self.session.execute(
                update(TimeEntry)
                .where(
                    TimeEntry.timesheet_id == timesheet.id,
                    TimeEntry.is_locked.is_(False),
                )
                .values(
                    approval_status=ApprovalStatus.APPROVED.value,
                    approved_by_id=actor.user_id,
                    approved_at=now,
                    rejection_reason=None,
                )
            )
            affected = result.rowcount or 0
        else:
            affected = await self._unlink_all(timesheet.id)
        await self.session.flush()

        await self.audit.record(
            actor.company_id,
            actor.user_id,
            "TIMESHEET_REVIEWED",
            "Timesheet",
            timesheet.id,
            {
                "status": decision.value,
                "worker_id": timesheet.user_id,
                "entries_affected": affected,
                "notes": notes,
            },
        )
        logger.info("Timesheet %s reviewed: %s", timesheet.id, decision.value)
        return (await self._with_entries([timesheet]))[0]

    # ===== Helpers =====

    def _eligible(self, actor: Actor) -> tuple:
        return (
            TimeEntry.company_id == actor.company_id,
            TimeEntry.user_id == actor.user_id,
            TimeEntry.clock_out_time.is_not(None),
            TimeEntry.is_archived.is_(False),
            TimeEntry.is_locked.is_(False),
            TimeEntry.timesheet_id.is_(None),
        )

    async def _load_eligible(self, actor: Actor, ids: Iterable[UUID]) -> list[TimeEntry]:
        result = await self.session.execute(
            select(TimeEntry).where(TimeEntry.id.in_(list(ids)), *self._eligible(actor))
        )
        return list(result.scalars().all())

    async def _link(self, actor: Actor, timesheet: Timesheet, ids: list[UUID]) -> None:
        """Claim entries for the timesheet; all or nothing."""
        result = await self.session.execute(
            update(TimeEntry)
            .where(TimeEntry.id.in_(ids), *self._eligible(actor))
            .values(timesheet_id=timesheet.id)
        )
        if (result.rowcount or 0) != len(ids):
            # Another request claimed or changed some entries in the meantime
            claimed = set(
                (
                    await self.session.execute(
                        select(TimeEntry.id).where(
                            TimeEntry.id.in_(ids), TimeEntry.timesheet_id == timesheet.id
                        )
                    )
                ).scalars()
            )
            raise PartialSelection([i for i in ids if i not in claimed])

    async def _unlink_all(self, timesheet_id: UUID) -> int:
        result = await self.session.execute(
            update(TimeEntry)
            .where(TimeEntry.timesheet_id == timesheet_id)
            .values(timesheet_id=None)
        )
        return result.rowcount or 0

    async def _linked_entries(self, timesheet_id: UUID) -> list[TimeEntry]:
        result = await self.session.execute(
            select(TimeEntry)
            .where(TimeEntry.timesheet_id == timesheet_id)
            .order_by(TimeEntry.clock_in_time)
        )
        return list(result.scalars().all())

    async def _with_entries(self, timesheets: Iterable[Timesheet]) -> list[TimesheetWithEntries]:
        timesheets = list(timesheets)
        if not timesheets:
            return []
        result = await self.session.execute(
            select(TimeEntry)
            .where(TimeEntry.timesheet_id.in_([t.id for t in timesheets]))
            .order_by(TimeEntry.clock_in_time)
        )
        grouped: dict[UUID, list[TimeEntry]] = {t.id: [] for t in timesheets}
        for entry in result.scalars().all():
            grouped[entry.timesheet_id].append(entry)
        return [TimesheetWithEntries(timesheet=t, entries=grouped[t.id]) for t in timesheets]

    async def _get(self, actor: Actor, timesheet_id: UUID) -> Timesheet:
        timesheet = await self.session.scalar(
            select(Timesheet).where(
                Timesheet.id == timesheet_id,
                Timesheet.company_id == actor.company_id,
            )
        )
        if timesheet is None:
            raise NotFoundError("Timesheet", timesheet_id)
        return timesheet

    async def _get_own(self, actor: Actor, timesheet_id: UUID) -> Timesheet:
        timesheet = await self._get(actor, timesheet_id)
        if timesheet.user_id != actor.user_id:
            raise NotFoundError("Timesheet", timesheet_id)
        return timesheet


def _apply_totals(timesheet: Timesheet, entries: list[TimeEntry]) -> None:
    """Totals and the day-rounded [min, max] clock-in window of ``entries``."""
    clock_ins = [e.clock_in_time for e in entries]
    window = window_for_days(min(clock_ins).date(), max(clock_ins).date())
    timesheet.period_start = window.start
    timesheet.period_end = window.end
    timesheet.total_minutes = sum(e.duration_minutes or 0 for e in entries)
    timesheet.total_break_minutes = sum(e.break_minutes or 0 for e in entries)


def _by_clock_in(entries: list[TimeEntry]) -> list[TimeEntry]:
    return sorted(entries, key=lambda e: e.clock_in_time)
