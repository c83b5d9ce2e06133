"""Tests for the shift pricing engine."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from punchd.calculators.engine import ShiftEngine, elapsed_minutes
from punchd.calculators.types import OvertimeSettings
from punchd.models import ApprovalStatus, TimeEntry

from .conftest import START


class TestElapsedMinutes:
    def test_whole_minutes(self):
        assert elapsed_minutes(START, START + timedelta(hours=8)) == 480

    def test_rounds_half_up(self):
        assert elapsed_minutes(START, START + timedelta(seconds=90)) == 2
        assert elapsed_minutes(START, START + timedelta(seconds=89)) == 1


class TestWeeklyMinutesBefore:
    async def test_counts_completed_entries_this_week(self, session, worker, make_entry):
        await make_entry(worker, START - timedelta(days=2), minutes=480)  # Monday
        await make_entry(worker, START - timedelta(days=1), minutes=300)

        total = await ShiftEngine(session).weekly_minutes_before(
            worker.company_id, worker.id, START
        )
        assert total == 780

    async def test_ignores_previous_week_rejected_and_archived(
        self, session, worker, make_entry
    ):
        await make_entry(worker, START - timedelta(days=4), minutes=480)  # previous Saturday
        await make_entry(
            worker, START - timedelta(days=1), minutes=300, status=ApprovalStatus.REJECTED
        )
        await make_entry(worker, START - timedelta(days=2), minutes=200, is_archived=True)

        total = await ShiftEngine(session).weekly_minutes_before(
            worker.company_id, worker.id, START
        )
        assert total == 0

    async def test_ignores_other_workers(self, session, worker, other_worker, make_entry):
        await make_entry(other_worker, START - timedelta(days=1), minutes=300)

        total = await ShiftEngine(session).weekly_minutes_before(
            worker.company_id, worker.id, START
        )
        assert total == 0


class TestPriceEntry:
    async def test_prices_long_shift(self, session, worker, job):
        entry = TimeEntry(
            company_id=worker.company_id,
            user_id=worker.id,
            job_id=job.id,
            clock_in_time=START,
            clock_out_time=START + timedelta(minutes=780),
            break_minutes=30,
        )
        session.add(entry)
        await session.flush()

        breakdown = await ShiftEngine(session).price_entry(entry, OvertimeSettings())

        assert entry.duration_minutes == 750
        assert entry.hourly_rate == Decimal("20.00")
        assert (entry.regular_minutes, entry.overtime_minutes, entry.double_time_minutes) == (
            480,
            240,
            30,
        )
        assert entry.labor_cost == Decimal("300.00")
        assert breakdown.total_pay == Decimal("300.00")

    async def test_weekly_overtime_applies(self, session, worker, make_entry):
        for day in range(1, 4):
            await make_entry(worker, START - timedelta(days=3) + timedelta(days=day - 1), minutes=720)
        # 36h already this week; a 6h shift crosses 40h after 4h
        entry = TimeEntry(
            company_id=worker.company_id,
            user_id=worker.id,
            clock_in_time=START + timedelta(hours=14),
            clock_out_time=START + timedelta(hours=20),
        )
        session.add(entry)
        await session.flush()

        await ShiftEngine(session).price_entry(entry, OvertimeSettings())

        assert entry.regular_minutes == 240
        assert entry.overtime_minutes == 120

    async def test_snapshotted_rate_is_kept(self, session, worker):
        entry = TimeEntry(
            company_id=worker.company_id,
            user_id=worker.id,
            clock_in_time=START,
            clock_out_time=START + timedelta(hours=1),
            hourly_rate=Decimal("18.00"),
        )
        session.add(entry)
        await session.flush()

        await ShiftEngine(session).price_entry(entry, OvertimeSettings())
        assert entry.labor_cost == Decimal("18.00")

    async def test_active_entry_cannot_be_priced(self, session, worker):
        entry = TimeEntry(
            company_id=worker.company_id,
            user_id=worker.id,
            clock_in_time=datetime(2026, 3, 4, tzinfo=timezone.utc),
        )
        with pytest.raises(ValueError):
            await ShiftEngine(session).price_entry(entry, OvertimeSettings())
