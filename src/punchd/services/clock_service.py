"""Clock session service - clock-in/out and breaks for one worker."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, TypeVar
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from punchd.calculators.engine import ShiftEngine, elapsed_minutes, exceeds_max_shift
from punchd.calculators.geofence import is_within_geofence
from punchd.calculators.rate_resolver import RateResolver
from punchd.config import Settings, get_settings
from punchd.database import conditional_insert
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
from punchd.integrations.base import FaceComparator, Notifier, PhotoStore
from punchd.models import (
    ApprovalStatus,
    ClockState,
    EntryType,
    FaceVerificationLog,
    Job,
    TimeEntry,
    User,
    utcnow,
)
from punchd.services.actor import Actor
from punchd.services.audit_service import AuditService
from punchd.services.settings_service import SettingsService
from punchd.services.state_machine import ClockSessionStateMachine

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Sent by clients that could not capture a photo
PLACEHOLDER_PHOTO = "placeholder.jpg"

FLAG_PHOTO_UPLOAD_FAILED = "PHOTO_UPLOAD_FAILED"
FLAG_FACE_VERIFICATION_ERROR = "FACE_VERIFICATION_ERROR"


@dataclass(frozen=True)
class ClockStatus:
    """A worker's current clock state and open entry, if any."""

    state: ClockState
    active_entry: TimeEntry | None

    @property
    def is_clocked_in(self) -> bool:
        return self.active_entry is not None

    @property
    def is_on_break(self) -> bool:
        return self.state == ClockState.ON_BREAK


class ClockService:
    """Service for a worker's clock session lifecycle.

    Operations:
    - clock_in: geofence check, photo storage, face verification
    - start_break / end_break: accumulate break minutes on the open entry
    - clock_out: compute worked minutes and price the shift
    - get_current_status / list_entries: read side

    The at-most-one-open-session rule is enforced by a partial unique index;
    clock-in is a single conditional insert against it.
    """

    def __init__(
        self,
        session: AsyncSession,
        audit: AuditService,
        photo_store: PhotoStore,
        face_comparator: FaceComparator,
        notifier: Notifier,
        settings: Settings | None = None,
        now: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.audit = audit
        self.photo_store = photo_store
        self.face_comparator = face_comparator
        self.notifier = notifier
        self.settings = settings or get_settings()
        self.now = now
        self.rate_resolver = RateResolver(session)
        self.engine = ShiftEngine(session)
        self.settings_service = SettingsService(session, audit)

    # ===== Clock in =====

    async def clock_in(
        self,
        actor: Actor,
        entry_type: EntryType | str,
        latitude: float,
        longitude: float,
        job_id: UUID | None = None,
        photo: str | None = None,
    ) -> TimeEntry:
        """Open a new clock session for the acting worker.

        Raises:
            AlreadyClockedIn: the worker already has an open entry.
            JobRequired: JOB_TIME without a job.
            GeofenceViolation: outside the job's geofence (nothing persisted).
            IdentityMismatch: face comparison below threshold. The tentative
                entry is removed and the rejection is committed.
        """
        entry_type = EntryType(entry_type)
        if await self._active_entry(actor) is not None:
            raise AlreadyClockedIn()

        user = await self._get_user(actor)
        job: Job | None = None
        if entry_type == EntryType.JOB_TIME:
            if job_id is None:
                raise JobRequired()
            job = await self._get_job(actor.company_id, job_id)
            geofence = is_within_geofence(
                job.latitude, job.longitude, job.geofence_radius_meters, latitude, longitude
            )
            if not geofence.is_within:
                logger.warning(
                    "Clock-in denied for user %s: %sm from job %s (allowed %sm)",
                    actor.user_id,
                    geofence.rounded_distance,
                    job.id,
                    job.geofence_radius_meters,
                )
                raise GeofenceViolation(geofence.rounded_distance, job.geofence_radius_meters)

        flags: list[str] = []
        photo_url = await self._store_photo(photo, actor.user_id, "clock-in")
        if photo_url is None and _has_photo(photo):
            flags.append(FLAG_PHOTO_UPLOAD_FAILED)

        rate = await self.rate_resolver.resolve(
            actor.company_id, actor.user_id, job.id if job else None
        )

        entry = await self._insert_active_entry(
            company_id=actor.company_id,
            user_id=actor.user_id,
            job_id=job.id if job else None,
            entry_type=entry_type.value,
            worker_type=user.worker_type,
            clock_in_time=self.now(),
            clock_in_latitude=latitude,
            clock_in_longitude=longitude,
            clock_in_photo_url=photo_url,
            is_flagged=bool(flags),
            flag_reason=", ".join(flags) or None,
            hourly_rate=rate,
        )

        if photo_url is not None:
            if user.reference_photo_url:
                await self._verify_identity(user, job, entry, photo_url)
            else:
                user.reference_photo_url = photo_url
                logger.info("Reference photo set for user %s", user.id)

        await self.session.flush()
        await self.audit.record(
            actor.company_id,
            actor.user_id,
            "CLOCK_IN",
            "TimeEntry",
            entry.id,
            {
                "entry_type": entry.entry_type,
                "job_id": entry.job_id,
                "flag_reason": entry.flag_reason,
            },
        )
        logger.info("User %s clocked in (entry %s)", actor.user_id, entry.id)
        return entry

    async def _insert_active_entry(self, **values: Any) -> TimeEntry:
        """INSERT ... ON CONFLICT DO NOTHING against the open-session index."""
        now = self.now()
        stmt = (
            conditional_insert(self.session, TimeEntry.__table__)
            .values(
                id=uuid4(),
                approval_status=ApprovalStatus.PENDING.value,
                created_at=now,
                updated_at=now,
                **values,
            )
            .on_conflict_do_nothing(
                index_elements=["user_id"],
                index_where=TimeEntry.__table__.c.clock_out_time.is_(None),
            )
            .returning(TimeEntry.__table__.c.id)
        )
        entry_id = (await self.session.execute(stmt)).scalar_one_or_none()
        if entry_id is None:
            # Lost the race to a concurrent clock-in for the same worker
            raise AlreadyClockedIn()

        result = await self.session.execute(select(TimeEntry).where(TimeEntry.id == entry_id))
        return result.scalar_one()

    async def _verify_identity(
        self,
        user: User,
        job: Job | None,
        entry: TimeEntry,
        photo_url: str,
    ) -> None:
        threshold = self.settings.face_match_threshold
        try:
            confidence = await self._bounded(
                self.face_comparator.compare(user.reference_photo_url, photo_url)
            )
        except Exception as exc:
            # Service failure or timeout: never treated as a mismatch
            logger.warning("Face verification error for entry %s: %r", entry.id, exc)
            self.session.add(
                FaceVerificationLog(
                    company_id=user.company_id,
                    user_id=user.id,
                    time_entry_id=entry.id,
                    submitted_photo_url=photo_url,
                    matched=False,
                    error=repr(exc),
                )
            )
            entry.add_flag(FLAG_FACE_VERIFICATION_ERROR)
            return

        matched = confidence >= threshold
        logger.info(
            "Face verification for user %s: %.1f%% (matched=%s)", user.id, confidence, matched
        )
        if matched:
            self.session.add(
                FaceVerificationLog(
                    company_id=user.company_id,
                    user_id=user.id,
                    time_entry_id=entry.id,
                    submitted_photo_url=photo_url,
                    confidence_score=confidence,
                    matched=True,
                )
            )
            return

        logger.warning(
            "Face mismatch for user %s (%.1f%% < %.1f%%), clock-in blocked",
            user.id,
            confidence,
            threshold,
        )
        await self.session.delete(entry)
        self.session.add(
            FaceVerificationLog(
                company_id=user.company_id,
                user_id=user.id,
                time_entry_id=None,
                submitted_photo_url=photo_url,
                confidence_score=confidence,
                matched=False,
            )
        )
        job_name = job.name if job else "Travel time"
        await self.audit.record(
            user.company_id,
            user.id,
            "CLOCK_IN_BLOCKED",
            "User",
            user.id,
            {"confidence": confidence, "threshold": threshold, "job_name": job_name},
        )
        await self._notify(
            user.company_id,
            "Possible buddy punch detected",
            f"{user.name} ({user.phone or 'no phone'}) failed face verification "
            f"clocking in to {job_name}. Confidence: {confidence:.1f}%. Photo: {photo_url}",
        )
        # The rejection outlives the caller's rollback
        await self.session.commit()
        raise IdentityMismatch(confidence, threshold)

    # ===== Breaks =====

    async def start_break(self, actor: Actor) -> TimeEntry:
        """Put the open session on break."""
        entry = await self._require_active(actor)
        if not ClockSessionStateMachine.can_transition(entry.clock_state, ClockState.ON_BREAK):
            raise AlreadyOnBreak()

        entry.is_on_break = True
        entry.break_start_time = self.now()
        await self.session.flush()
        logger.info("User %s started a break (entry %s)", actor.user_id, entry.id)
        return entry

    async def end_break(self, actor: Actor) -> TimeEntry:
        """End the current break and add its length to the entry's break total."""
        entry = await self._require_active(actor)
        if entry.clock_state != ClockState.ON_BREAK:
            raise NotOnBreak()

        now = self.now()
        started = entry.break_start_time or now
        entry.break_minutes = (entry.break_minutes or 0) + max(elapsed_minutes(started, now), 0)
        entry.break_end_time = now
        entry.is_on_break = False
        await self.session.flush()
        logger.info(
            "User %s ended a break (entry %s, %s break minutes)",
            actor.user_id,
            entry.id,
            entry.break_minutes,
        )
        return entry

    # ===== Clock out =====

    async def clock_out(
        self,
        actor: Actor,
        latitude: float,
        longitude: float,
        photo: str | None = None,
    ) -> TimeEntry:
        """Close the open session and price it.

        Raises:
            NotClockedIn: no open entry.
            EntryLocked: the open entry was swept into a locked pay period.
            OnBreak: the break must be ended first.
            ExcessiveDuration: elapsed time exceeds the maximum shift length.
        """
        entry = await self._require_active(actor)
        if not ClockSessionStateMachine.can_transition(entry.clock_state, ClockState.CLOCKED_OUT):
            raise OnBreak()

        now = self.now()
        max_minutes = self.settings.max_shift_minutes
        if exceeds_max_shift(entry.clock_in_time, now, max_minutes):
            raise ExcessiveDuration(elapsed_minutes(entry.clock_in_time, now), max_minutes)

        # Best effort: a failed clock-out upload is not flagged
        photo_url = await self._store_photo(photo, actor.user_id, "clock-out")

        entry.clock_out_time = now
        entry.clock_out_latitude = latitude
        entry.clock_out_longitude = longitude
        entry.clock_out_photo_url = photo_url

        overtime = await self.settings_service.get_overtime_settings(actor.company_id)
        breakdown = await self.engine.price_entry(entry, overtime)
        await self.session.flush()

        await self.audit.record(
            actor.company_id,
            actor.user_id,
            "CLOCK_OUT",
            "TimeEntry",
            entry.id,
            {
                "duration_minutes": entry.duration_minutes,
                "break_minutes": entry.break_minutes,
                "labor_cost": breakdown.total_pay,
            },
        )
        logger.info(
            "User %s clocked out (entry %s, %s minutes)",
            actor.user_id,
            entry.id,
            entry.duration_minutes,
        )
        return entry

    # ===== Read side =====

    async def get_current_status(self, actor: Actor) -> ClockStatus:
        entry = await self._active_entry(actor)
        if entry is None:
            return ClockStatus(state=ClockState.NOT_CLOCKED_IN, active_entry=None)
        return ClockStatus(state=entry.clock_state, active_entry=entry)

    async def list_entries(
        self,
        actor: Actor,
        worker_id: UUID | None = None,
        job_id: UUID | None = None,
        approval_status: ApprovalStatus | str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[TimeEntry]:
        """List entries newest first. Workers only ever see their own."""
        if not actor.is_manager:
            if worker_id is not None and worker_id != actor.user_id:
                raise Forbidden("Workers can only view their own time entries")
            worker_id = actor.user_id

        stmt = select(TimeEntry).where(TimeEntry.company_id == actor.company_id)
        if worker_id is not None:
            stmt = stmt.where(TimeEntry.user_id == worker_id)
        if job_id is not None:
            stmt = stmt.where(TimeEntry.job_id == job_id)
        if approval_status is not None:
            stmt = stmt.where(TimeEntry.approval_status == ApprovalStatus(approval_status).value)
        if start is not None:
            stmt = stmt.where(TimeEntry.clock_in_time >= start)
        if end is not None:
            stmt = stmt.where(TimeEntry.clock_in_time <= end)

        result = await self.session.execute(stmt.order_by(TimeEntry.clock_in_time.desc()))
        return list(result.scalars().all())

    # ===== Helpers =====

    async def _active_entry(self, actor: Actor) -> TimeEntry | None:
        result = await self.session.execute(
            select(TimeEntry)
            .where(
                TimeEntry.company_id == actor.company_id,
                TimeEntry.user_id == actor.user_id,
                TimeEntry.clock_out_time.is_(None),
            )
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def _require_active(self, actor: Actor) -> TimeEntry:
        entry = await self._active_entry(actor)
        if entry is None:
            raise NotClockedIn()
        if entry.is_locked:
            raise EntryLocked(entry.id)
        return entry

    async def _get_user(self, actor: Actor) -> User:
        user = await self.session.scalar(
            select(User).where(User.id == actor.user_id, User.company_id == actor.company_id)
        )
        if user is None:
            raise NotFoundError("User", actor.user_id)
        return user

    async def _get_job(self, company_id: UUID, job_id: UUID) -> Job:
        job = await self.session.scalar(
            select(Job).where(Job.id == job_id, Job.company_id == company_id)
        )
        if job is None:
            raise NotFoundError("Job", job_id)
        return job

    async def _store_photo(self, photo: str | None, owner_id: UUID, purpose: str) -> str | None:
        """Upload a photo, returning None when absent or when storage fails."""
        if not _has_photo(photo):
            return None
        try:
            return await self._bounded(self.photo_store.store(photo, owner_id, purpose))
        except Exception as exc:
            logger.warning("Failed to store %s photo for user %s: %r", purpose, owner_id, exc)
            return None

    async def _notify(self, company_id: UUID, subject: str, message: str) -> None:
        try:
            await self._bounded(self.notifier.notify_admins(company_id, subject, message))
        except Exception:
            logger.exception("Failed to notify admins of company %s", company_id)

    async def _bounded(self, call: Awaitable[T]) -> T:
        return await asyncio.wait_for(call, timeout=self.settings.external_call_timeout_seconds)


def _has_photo(photo: str | None) -> bool:
    return bool(photo) and photo != PLACEHOLDER_PHOTO
