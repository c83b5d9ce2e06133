"""Tests for the clock session service."""

import asyncio
from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from punchd.errors import (
    AlreadyClockedIn,
    AlreadyOnBreak,
    EntryLocked,
    ExcessiveDuration,
    Forbidden,
    GeofenceViolation,
    IdentityMismatch,
    JobRequired,
    NotClockedIn,
    NotFoundError,
    NotOnBreak,
    OnBreak,
)
from punchd.models import (
    ApprovalStatus,
    AuditEvent,
    ClockState,
    EntryType,
    FaceVerificationLog,
    TimeEntry,
    User,
)
from punchd.services.clock_service import (
    FLAG_FACE_VERIFICATION_ERROR,
    FLAG_PHOTO_UPLOAD_FAILED,
    PLACEHOLDER_PHOTO,
)

from .conftest import JOB_LAT, JOB_LNG, START, north_of

PHOTO = "data:image/jpeg;base64,AAAA"


async def count_entries(session) -> int:
    return await session.scalar(select(func.count()).select_from(TimeEntry))


async def audit_actions(session) -> list[str]:
    await session.flush()
    result = await session.execute(select(AuditEvent.action))
    return sorted(result.scalars().all())


class TestClockIn:
    """Clock-in validation, geofence and identity checks."""

    async def test_clock_in_inside_geofence(self, session, clock_service, worker_actor, job):
        entry = await clock_service.clock_in(
            worker_actor,
            EntryType.JOB_TIME,
            latitude=north_of(JOB_LAT, 50),
            longitude=JOB_LNG,
            job_id=job.id,
        )

        assert entry.approval_status == ApprovalStatus.PENDING.value
        assert entry.is_flagged is False
        assert entry.clock_in_time == START
        assert entry.hourly_rate == Decimal("20.00")
        assert entry.worker_type == "HOURLY"
        assert await audit_actions(session) == ["CLOCK_IN"]

    async def test_clock_in_outside_geofence(self, session, clock_service, worker_actor, job):
        with pytest.raises(GeofenceViolation) as exc_info:
            await clock_service.clock_in(
                worker_actor,
                EntryType.JOB_TIME,
                latitude=north_of(JOB_LAT, 150),
                longitude=JOB_LNG,
                job_id=job.id,
            )

        assert exc_info.value.distance_meters == 150
        assert exc_info.value.radius_meters == 100
        assert exc_info.value.details == {"distance_meters": 150, "radius_meters": 100}
        assert await count_entries(session) == 0

    async def test_job_time_requires_job(self, clock_service, worker_actor):
        with pytest.raises(JobRequired):
            await clock_service.clock_in(worker_actor, "JOB_TIME", JOB_LAT, JOB_LNG)

    async def test_travel_time_skips_geofence(self, clock_service, worker_actor):
        entry = await clock_service.clock_in(worker_actor, EntryType.TRAVEL_TIME, 0.0, 0.0)

        assert entry.entry_type == EntryType.TRAVEL_TIME.value
        assert entry.job_id is None

    async def test_already_clocked_in(self, session, clock_service, worker_actor, job):
        await clock_service.clock_in(worker_actor, "JOB_TIME", JOB_LAT, JOB_LNG, job_id=job.id)

        with pytest.raises(AlreadyClockedIn):
            await clock_service.clock_in(worker_actor, "TRAVEL_TIME", JOB_LAT, JOB_LNG)
        assert await count_entries(session) == 1

    async def test_active_session_index_rejects_second_open_entry(self, session, worker):
        session.add_all(
            [
                TimeEntry(company_id=worker.company_id, user_id=worker.id, clock_in_time=START),
                TimeEntry(company_id=worker.company_id, user_id=worker.id, clock_in_time=START),
            ]
        )
        with pytest.raises(IntegrityError):
            await session.flush()

    async def test_first_photo_becomes_reference(
        self, session, clock_service, worker_actor, worker, job, face_comparator
    ):
        entry = await clock_service.clock_in(
            worker_actor, "JOB_TIME", JOB_LAT, JOB_LNG, job_id=job.id, photo=PHOTO
        )

        user = await session.get(User, worker.id)
        assert user.reference_photo_url == entry.clock_in_photo_url
        assert entry.clock_in_photo_url.startswith("memory://clock-in/")
        assert face_comparator.calls == []

    async def test_placeholder_photo_is_ignored(
        self, clock_service, worker_actor, job, photo_store
    ):
        entry = await clock_service.clock_in(
            worker_actor, "JOB_TIME", JOB_LAT, JOB_LNG, job_id=job.id, photo=PLACEHOLDER_PHOTO
        )

        assert entry.clock_in_photo_url is None
        assert entry.is_flagged is False
        assert photo_store.photos == {}

    async def test_photo_upload_failure_flags_entry(
        self, clock_service, worker_actor, job, photo_store
    ):
        photo_store.fail = True

        entry = await clock_service.clock_in(
            worker_actor, "JOB_TIME", JOB_LAT, JOB_LNG, job_id=job.id, photo=PHOTO
        )

        assert entry.is_flagged is True
        assert entry.flag_reason == FLAG_PHOTO_UPLOAD_FAILED
        assert entry.clock_in_photo_url is None


class TestFaceVerification:
    """Comparison against the worker's reference photo."""

    @pytest.fixture(autouse=True)
    async def reference_photo(self, session, worker):
        worker.reference_photo_url = "memory://reference.jpg"
        await session.commit()

    async def test_match_logs_verification(
        self, session, clock_service, worker_actor, job, face_comparator
    ):
        face_comparator.confidence = 92.5

        entry = await clock_service.clock_in(
            worker_actor, "JOB_TIME", JOB_LAT, JOB_LNG, job_id=job.id, photo=PHOTO
        )

        log = await session.scalar(select(FaceVerificationLog))
        assert log.matched is True
        assert log.time_entry_id == entry.id
        assert log.confidence_score == 92.5
        assert face_comparator.calls == [("memory://reference.jpg", entry.clock_in_photo_url)]

    async def test_threshold_is_inclusive(self, clock_service, worker_actor, job, face_comparator):
        face_comparator.confidence = 80.0

        entry = await clock_service.clock_in(
            worker_actor, "JOB_TIME", JOB_LAT, JOB_LNG, job_id=job.id, photo=PHOTO
        )
        assert entry.is_flagged is False

    async def test_mismatch_blocks_and_notifies(
        self, session, clock_service, worker_actor, job, face_comparator, notifier
    ):
        face_comparator.confidence = 42.0

        with pytest.raises(IdentityMismatch) as exc_info:
            await clock_service.clock_in(
                worker_actor, "JOB_TIME", JOB_LAT, JOB_LNG, job_id=job.id, photo=PHOTO
            )

        # The rejection survives a rollback by the caller
        await session.rollback()

        assert exc_info.value.confidence == 42.0
        assert exc_info.value.threshold == 80.0
        assert await count_entries(session) == 0
        log = await session.scalar(select(FaceVerificationLog))
        assert log.matched is False
        assert log.time_entry_id is None
        assert await audit_actions(session) == ["CLOCK_IN_BLOCKED"]
        assert len(notifier.sent) == 1
        _, subject, message = notifier.sent[0]
        assert "buddy punch" in subject
        assert job.name in message
        assert "42.0%" in message

    async def test_service_error_flags_instead_of_blocking(
        self, session, clock_service, worker_actor, job, face_comparator
    ):
        face_comparator.fail = True

        entry = await clock_service.clock_in(
            worker_actor, "JOB_TIME", JOB_LAT, JOB_LNG, job_id=job.id, photo=PHOTO
        )

        assert entry.is_flagged is True
        assert entry.flag_reason == FLAG_FACE_VERIFICATION_ERROR
        log = await session.scalar(select(FaceVerificationLog))
        assert log.matched is False
        assert log.error is not None

    async def test_timeout_is_a_verification_error(
        self, clock_service, worker_actor, job, face_comparator
    ):
        async def slow_compare(reference_url, candidate_url):
            await asyncio.sleep(5)
            return 0.0

        face_comparator.compare = slow_compare
        clock_service.settings = replace(clock_service.settings, external_call_timeout_seconds=0.01)

        entry = await clock_service.clock_in(
            worker_actor, "JOB_TIME", JOB_LAT, JOB_LNG, job_id=job.id, photo=PHOTO
        )
        assert entry.flag_reason == FLAG_FACE_VERIFICATION_ERROR


class TestBreaksAndClockOut:
    """Break accounting and shift pricing at clock-out."""

    async def test_full_shift_with_break(self, session, clock_service, worker_actor, job, clock):
        await clock_service.clock_in(worker_actor, "JOB_TIME", JOB_LAT, JOB_LNG, job_id=job.id)
        clock.advance(hours=4)
        on_break = await clock_service.start_break(worker_actor)
        assert on_break.clock_state == ClockState.ON_BREAK

        clock.advance(minutes=30)
        await clock_service.end_break(worker_actor)
        clock.advance(hours=4)
        entry = await clock_service.clock_out(worker_actor, JOB_LAT, JOB_LNG)

        assert entry.break_minutes == 30
        assert entry.duration_minutes == 480
        assert entry.regular_minutes == 480
        assert entry.labor_cost == Decimal("160.00")
        assert await audit_actions(session) == ["CLOCK_IN", "CLOCK_OUT"]

    async def test_long_shift_is_split(self, clock_service, worker_actor, job, clock):
        await clock_service.clock_in(worker_actor, "JOB_TIME", JOB_LAT, JOB_LNG, job_id=job.id)
        clock.advance(hours=12, minutes=30)

        entry = await clock_service.clock_out(worker_actor, JOB_LAT, JOB_LNG)

        assert entry.duration_minutes == 750
        assert entry.regular_pay == Decimal("160.00")
        assert entry.overtime_pay == Decimal("120.00")
        assert entry.double_time_pay == Decimal("20.00")
        assert entry.labor_cost == Decimal("300.00")

    async def test_break_state_errors(self, clock_service, worker_actor, job):
        with pytest.raises(NotClockedIn):
            await clock_service.start_break(worker_actor)

        await clock_service.clock_in(worker_actor, "JOB_TIME", JOB_LAT, JOB_LNG, job_id=job.id)
        with pytest.raises(NotOnBreak):
            await clock_service.end_break(worker_actor)

        await clock_service.start_break(worker_actor)
        with pytest.raises(AlreadyOnBreak):
            await clock_service.start_break(worker_actor)
        with pytest.raises(OnBreak):
            await clock_service.clock_out(worker_actor, JOB_LAT, JOB_LNG)

    async def test_clock_out_without_session(self, clock_service, worker_actor):
        with pytest.raises(NotClockedIn):
            await clock_service.clock_out(worker_actor, JOB_LAT, JOB_LNG)

    async def test_excessive_duration(self, clock_service, worker_actor, job, clock):
        await clock_service.clock_in(worker_actor, "JOB_TIME", JOB_LAT, JOB_LNG, job_id=job.id)
        clock.advance(hours=24, minutes=1)

        with pytest.raises(ExcessiveDuration) as exc_info:
            await clock_service.clock_out(worker_actor, JOB_LAT, JOB_LNG)
        assert exc_info.value.details == {"elapsed_minutes": 1441, "max_minutes": 1440}

    async def test_exactly_max_shift_is_accepted(self, clock_service, worker_actor, job, clock):
        await clock_service.clock_in(worker_actor, "JOB_TIME", JOB_LAT, JOB_LNG, job_id=job.id)
        clock.advance(hours=24)

        entry = await clock_service.clock_out(worker_actor, JOB_LAT, JOB_LNG)

        assert entry.duration_minutes == 1440

    async def test_max_shift_uses_unrounded_elapsed(self, clock_service, worker_actor, job, clock):
        await clock_service.clock_in(worker_actor, "JOB_TIME", JOB_LAT, JOB_LNG, job_id=job.id)
        clock.advance(hours=24, seconds=20)

        with pytest.raises(ExcessiveDuration):
            await clock_service.clock_out(worker_actor, JOB_LAT, JOB_LNG)

    async def test_locked_open_entry_cannot_be_changed(
        self, session, clock_service, worker_actor, job, clock
    ):
        entry = await clock_service.clock_in(
            worker_actor, "JOB_TIME", JOB_LAT, JOB_LNG, job_id=job.id
        )
        entry.is_locked = True
        await session.flush()
        clock.advance(hours=8)

        with pytest.raises(EntryLocked):
            await clock_service.start_break(worker_actor)
        with pytest.raises(EntryLocked):
            await clock_service.clock_out(worker_actor, JOB_LAT, JOB_LNG)

        assert entry.clock_out_time is None
        assert entry.is_on_break is False

    async def test_clock_out_photo_failure_is_ignored(
        self, clock_service, worker_actor, job, clock, photo_store
    ):
        await clock_service.clock_in(worker_actor, "JOB_TIME", JOB_LAT, JOB_LNG, job_id=job.id)
        clock.advance(hours=1)
        photo_store.fail = True

        entry = await clock_service.clock_out(worker_actor, JOB_LAT, JOB_LNG, photo=PHOTO)

        assert entry.clock_out_photo_url is None
        assert entry.is_flagged is False

    async def test_can_clock_in_again_after_clock_out(self, clock_service, worker_actor, job, clock):
        await clock_service.clock_in(worker_actor, "JOB_TIME", JOB_LAT, JOB_LNG, job_id=job.id)
        clock.advance(hours=1)
        await clock_service.clock_out(worker_actor, JOB_LAT, JOB_LNG)
        clock.advance(minutes=5)

        entry = await clock_service.clock_in(worker_actor, "TRAVEL_TIME", JOB_LAT, JOB_LNG)
        assert entry.is_active


class TestReadSide:
    async def test_current_status(self, clock_service, worker_actor, job):
        status = await clock_service.get_current_status(worker_actor)
        assert status.state == ClockState.NOT_CLOCKED_IN
        assert status.is_clocked_in is False

        await clock_service.clock_in(worker_actor, "JOB_TIME", JOB_LAT, JOB_LNG, job_id=job.id)
        await clock_service.start_break(worker_actor)

        status = await clock_service.get_current_status(worker_actor)
        assert status.state == ClockState.ON_BREAK
        assert status.is_clocked_in is True
        assert status.is_on_break is True

    async def test_workers_only_see_their_own_entries(
        self, clock_service, worker_actor, admin_actor, worker, other_worker, make_entry
    ):
        mine = await make_entry(worker, START)
        await make_entry(other_worker, START)

        assert [e.id for e in await clock_service.list_entries(worker_actor)] == [mine.id]
        assert len(await clock_service.list_entries(admin_actor)) == 2
        with pytest.raises(Forbidden):
            await clock_service.list_entries(worker_actor, worker_id=other_worker.id)

    async def test_filter_by_status(self, clock_service, admin_actor, worker, make_entry):
        await make_entry(worker, START, status=ApprovalStatus.APPROVED)
        await make_entry(worker, START.replace(day=5))

        pending = await clock_service.list_entries(admin_actor, approval_status="PENDING")
        assert len(pending) == 1

    async def test_unknown_worker_cannot_clock_in(self, clock_service, worker_actor, job):
        stranger = worker_actor.__class__(
            user_id=uuid4(), company_id=worker_actor.company_id, role=worker_actor.role
        )
        with pytest.raises(NotFoundError):
            await clock_service.clock_in(stranger, "TRAVEL_TIME", JOB_LAT, JOB_LNG)
