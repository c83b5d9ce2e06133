"""Tests for worker timesheets."""

from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import func, select

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
from punchd.models import ApprovalStatus, TimeEntry, Timesheet, TimesheetStatus

from .conftest import START, actor_for


async def count_timesheets(session) -> int:
    return await session.scalar(select(func.count()).select_from(Timesheet))


@pytest.fixture
async def week(worker, make_entry) -> list[TimeEntry]:
    """Three completed shifts, Wednesday to Friday."""
    return [
        await make_entry(worker, START + timedelta(days=i), break_minutes=30)
        for i in range(3)
    ]


@pytest.fixture
async def draft(timesheet_service, worker_actor, week):
    return await timesheet_service.create_timesheet(
        worker_actor, entry_ids=[e.id for e in week], name="Week 10"
    )


class TestCreateTimesheet:
    async def test_from_entry_ids(self, draft, week):
        timesheet = draft.timesheet

        assert timesheet.status == TimesheetStatus.DRAFT.value
        assert timesheet.name == "Week 10"
        assert timesheet.total_minutes == 1440
        assert timesheet.total_break_minutes == 90
        assert timesheet.period_start == datetime(2026, 3, 4, tzinfo=timezone.utc)
        assert timesheet.period_end.date() == date(2026, 3, 6)
        assert [e.id for e in draft.entries] == [e.id for e in week]

    async def test_entries_are_linked(self, session, draft, week):
        for entry in week:
            await session.refresh(entry)
        assert {e.timesheet_id for e in week} == {draft.timesheet.id}

    async def test_from_date_range(self, timesheet_service, worker_actor, week):
        result = await timesheet_service.create_timesheet(
            worker_actor, start=date(2026, 3, 5), end=date(2026, 3, 6)
        )

        assert len(result.entries) == 2
        assert result.timesheet.period_start.date() == date(2026, 3, 5)

    async def test_inverted_range(self, timesheet_service, worker_actor, week):
        with pytest.raises(InvalidPeriodRange):
            await timesheet_service.create_timesheet(
                worker_actor, start=date(2026, 3, 6), end=date(2026, 3, 5)
            )

    async def test_no_eligible_entries(self, timesheet_service, worker_actor, worker):
        with pytest.raises(NoEligibleEntries):
            await timesheet_service.create_timesheet(
                worker_actor, start=date(2026, 3, 2), end=date(2026, 3, 8)
            )

    async def test_partial_selection_creates_nothing(
        self, session, timesheet_service, worker_actor, worker, make_entry, draft
    ):
        fresh = await make_entry(worker, START + timedelta(days=3))
        already_linked = draft.entries[0]

        with pytest.raises(PartialSelection) as exc_info:
            await timesheet_service.create_timesheet(
                worker_actor, entry_ids=[fresh.id, already_linked.id]
            )

        assert exc_info.value.details["invalid_ids"] == [str(already_linked.id)]
        assert await count_timesheets(session) == 1
        await session.refresh(fresh)
        assert fresh.timesheet_id is None

    async def test_other_workers_entries_are_ineligible(
        self, timesheet_service, worker_actor, other_worker, make_entry
    ):
        theirs = await make_entry(other_worker, START)

        with pytest.raises(PartialSelection):
            await timesheet_service.create_timesheet(worker_actor, entry_ids=[theirs.id])

    async def test_open_and_locked_entries_are_ineligible(
        self, session, timesheet_service, worker_actor, worker, make_entry
    ):
        locked = await make_entry(worker, START, is_locked=True)
        active = TimeEntry(company_id=worker.company_id, user_id=worker.id, clock_in_time=START)
        session.add(active)
        await session.flush()

        with pytest.raises(PartialSelection) as exc_info:
            await timesheet_service.create_timesheet(
                worker_actor, entry_ids=[locked.id, active.id]
            )
        assert len(exc_info.value.details["invalid_ids"]) == 2

    async def test_unsubmitted_entries(
        self, timesheet_service, worker_actor, worker, make_entry, week, draft
    ):
        later = await make_entry(worker, START + timedelta(days=5))

        unsubmitted = await timesheet_service.list_unsubmitted_entries(worker_actor)

        assert [e.id for e in unsubmitted] == [later.id]
        assert await timesheet_service.list_unsubmitted_entries(
            worker_actor, worker_type="CONTRACTOR"
        ) == []


class TestUpdateTimesheet:
    async def test_replace_entries_recomputes_totals(
        self, session, timesheet_service, worker_actor, worker, make_entry, draft, week
    ):
        extra = await make_entry(worker, START + timedelta(days=5), minutes=240)

        result = await timesheet_service.update_timesheet(
            worker_actor, draft.timesheet.id, entry_ids=[week[0].id, extra.id]
        )

        assert {e.id for e in result.entries} == {week[0].id, extra.id}
        assert result.timesheet.total_minutes == 720
        assert result.timesheet.period_end.date() == date(2026, 3, 9)
        await session.refresh(week[1])
        assert week[1].timesheet_id is None

    async def test_rename_only(self, timesheet_service, worker_actor, draft):
        result = await timesheet_service.update_timesheet(
            worker_actor, draft.timesheet.id, name="Renamed"
        )

        assert result.timesheet.name == "Renamed"
        assert len(result.entries) == 3

    async def test_removing_all_entries_zeroes_totals(
        self, timesheet_service, worker_actor, draft
    ):
        result = await timesheet_service.update_timesheet(
            worker_actor, draft.timesheet.id, entry_ids=[]
        )

        assert result.entries == []
        assert result.timesheet.total_minutes == 0

    async def test_submitted_timesheet_not_editable(
        self, timesheet_service, worker_actor, draft
    ):
        await timesheet_service.submit_timesheet(worker_actor, draft.timesheet.id)

        with pytest.raises(NotEditable):
            await timesheet_service.update_timesheet(
                worker_actor, draft.timesheet.id, name="Too late"
            )

    async def test_only_owner_edits(self, timesheet_service, other_worker, draft):
        with pytest.raises(NotFoundError):
            await timesheet_service.update_timesheet(
                actor_for(other_worker), draft.timesheet.id, name="Mine now"
            )


class TestSubmitAndWithdraw:
    async def test_submit(self, timesheet_service, worker_actor, draft):
        submitted = await timesheet_service.submit_timesheet(worker_actor, draft.timesheet.id)

        assert submitted.status == TimesheetStatus.SUBMITTED.value
        assert submitted.submitted_at == START

    async def test_submit_twice(self, timesheet_service, worker_actor, draft):
        await timesheet_service.submit_timesheet(worker_actor, draft.timesheet.id)

        with pytest.raises(NotDraft):
            await timesheet_service.submit_timesheet(worker_actor, draft.timesheet.id)

    async def test_empty_timesheet(self, timesheet_service, worker_actor, draft):
        await timesheet_service.update_timesheet(worker_actor, draft.timesheet.id, entry_ids=[])

        with pytest.raises(EmptyTimesheet):
            await timesheet_service.submit_timesheet(worker_actor, draft.timesheet.id)

    async def test_withdraw(self, timesheet_service, worker_actor, draft):
        await timesheet_service.submit_timesheet(worker_actor, draft.timesheet.id)

        withdrawn = await timesheet_service.withdraw_timesheet(worker_actor, draft.timesheet.id)

        assert withdrawn.status == TimesheetStatus.DRAFT.value
        assert withdrawn.submitted_at is None

    async def test_withdraw_requires_submitted(self, timesheet_service, worker_actor, draft):
        with pytest.raises(NotSubmitted):
            await timesheet_service.withdraw_timesheet(worker_actor, draft.timesheet.id)


class TestReview:
    async def test_approval_cascades_to_unlocked_entries(
        self, session, timesheet_service, worker_actor, admin_actor, admin, draft, week
    ):
        await timesheet_service.submit_timesheet(worker_actor, draft.timesheet.id)
        # Locked after linking, e.g. by a pay period closing
        week[2].is_locked = True
        await session.flush()

        result = await timesheet_service.review_timesheet(
            admin_actor, draft.timesheet.id, "APPROVED", notes="Looks good"
        )

        assert result.timesheet.status == TimesheetStatus.APPROVED.value
        assert result.timesheet.reviewed_by_id == admin.id
        assert result.timesheet.review_notes == "Looks good"
        for entry in week:
            await session.refresh(entry)
        assert [e.approval_status for e in week] == [
            ApprovalStatus.APPROVED.value,
            ApprovalStatus.APPROVED.value,
            ApprovalStatus.PENDING.value,
        ]
        assert week[0].approved_by_id == admin.id

    async def test_rejection_unlinks_entries(
        self, session, timesheet_service, worker_actor, admin_actor, draft, week
    ):
        await timesheet_service.submit_timesheet(worker_actor, draft.timesheet.id)

        result = await timesheet_service.review_timesheet(
            admin_actor, draft.timesheet.id, TimesheetStatus.REJECTED
        )

        assert result.timesheet.status == TimesheetStatus.REJECTED.value
        assert result.entries == []
        for entry in week:
            await session.refresh(entry)
        assert {e.timesheet_id for e in week} == {None}
        assert {e.approval_status for e in week} == {ApprovalStatus.PENDING.value}

    async def test_review_requires_submitted(self, timesheet_service, admin_actor, draft):
        with pytest.raises(NotSubmitted):
            await timesheet_service.review_timesheet(admin_actor, draft.timesheet.id, "APPROVED")

    async def test_review_status_must_be_decision(
        self, timesheet_service, worker_actor, admin_actor, draft
    ):
        await timesheet_service.submit_timesheet(worker_actor, draft.timesheet.id)

        with pytest.raises(ValidationError):
            await timesheet_service.review_timesheet(admin_actor, draft.timesheet.id, "DRAFT")

    async def test_workers_cannot_review(self, timesheet_service, worker_actor, draft):
        await timesheet_service.submit_timesheet(worker_actor, draft.timesheet.id)

        with pytest.raises(Forbidden):
            await timesheet_service.review_timesheet(worker_actor, draft.timesheet.id, "APPROVED")

    async def test_pending_oldest_first(
        self, timesheet_service, admin_actor, worker_actor, other_worker, make_entry, draft, clock
    ):
        theirs = await make_entry(other_worker, START)
        other_actor = actor_for(other_worker)
        second = await timesheet_service.create_timesheet(other_actor, entry_ids=[theirs.id])

        await timesheet_service.submit_timesheet(other_actor, second.timesheet.id)
        clock.advance(hours=1)
        await timesheet_service.submit_timesheet(worker_actor, draft.timesheet.id)

        pending = await timesheet_service.list_pending_timesheets(admin_actor)

        assert [p.timesheet.id for p in pending] == [second.timesheet.id, draft.timesheet.id]


class TestReadAndDelete:
    async def test_workers_read_only_their_own(self, timesheet_service, other_worker, draft):
        with pytest.raises(Forbidden):
            await timesheet_service.get_timesheet(actor_for(other_worker), draft.timesheet.id)

    async def test_manager_reads_any(self, timesheet_service, admin_actor, draft):
        result = await timesheet_service.get_timesheet(admin_actor, draft.timesheet.id)
        assert len(result.entries) == 3

    async def test_list_mine(self, timesheet_service, worker_actor, other_worker, draft):
        assert [t.timesheet.id for t in await timesheet_service.list_my_timesheets(worker_actor)] == [
            draft.timesheet.id
        ]
        assert await timesheet_service.list_my_timesheets(actor_for(other_worker)) == []

    async def test_delete_draft_unlinks(self, session, timesheet_service, worker_actor, draft, week):
        await timesheet_service.delete_timesheet(worker_actor, draft.timesheet.id)

        assert await count_timesheets(session) == 0
        await session.refresh(week[0])
        assert week[0].timesheet_id is None

    async def test_submitted_cannot_be_deleted(self, timesheet_service, worker_actor, draft):
        await timesheet_service.submit_timesheet(worker_actor, draft.timesheet.id)

        with pytest.raises(NotDraft):
            await timesheet_service.delete_timesheet(worker_actor, draft.timesheet.id)

    async def test_unknown_timesheet(self, timesheet_service, worker_actor):
        with pytest.raises(NotFoundError):
            await timesheet_service.get_timesheet(worker_actor, uuid4())
