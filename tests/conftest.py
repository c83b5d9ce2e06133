"""Pytest fixtures for time-accounting tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Callable
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from punchd.calculators.geofence import EARTH_RADIUS_METERS
from punchd.config import Settings
from punchd.database import make_session_factory
from punchd.integrations.stubs import InMemoryPhotoStore, LoggingNotifier, StaticFaceComparator
from punchd.models import (
    ApprovalStatus,
    Base,
    Company,
    EntryType,
    Job,
    Role,
    TimeEntry,
    User,
    WorkerType,
)
from punchd.services import (
    Actor,
    ApprovalService,
    AuditService,
    ClockService,
    DatabaseAuditSink,
    PayPeriodService,
    SettingsService,
    TimesheetService,
)

# Use in-memory SQLite for tests (with async support).
# StaticPool keeps the single in-memory database alive across sessions.
TEST_DATABASE_URL = "sqlite+aiosqlite://"

# Wednesday
START = datetime(2026, 3, 4, 8, 0, tzinfo=timezone.utc)

JOB_LAT = 40.7128
JOB_LNG = -74.0060


def north_of(latitude: float, meters: float) -> float:
    """Latitude ``meters`` due north of ``latitude`` on the haversine sphere."""
    return latitude + meters / (EARTH_RADIUS_METERS * 3.141592653589793 / 180)


class FrozenClock:
    """Injectable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        database_url=TEST_DATABASE_URL,
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="INFO",
        face_match_threshold=80.0,
        external_call_timeout_seconds=1.0,
        max_shift_minutes=1440,
        unlock_reason_min_length=10,
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(START)


@pytest.fixture
async def engine():
    """Create a fresh test database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# ============================================================================
# Seed data
# ============================================================================


@pytest.fixture
async def company(session: AsyncSession) -> Company:
    company = Company(id=uuid4(), name="Acme Roofing")
    session.add(company)
    await session.commit()
    return company


async def _add_user(session: AsyncSession, company: Company, name: str, role: Role, **kwargs) -> User:
    user = User(id=uuid4(), company_id=company.id, name=name, role=role.value, **kwargs)
    session.add(user)
    await session.commit()
    return user


@pytest.fixture
async def owner(session: AsyncSession, company: Company) -> User:
    return await _add_user(session, company, "Olivia Owner", Role.OWNER)


@pytest.fixture
async def admin(session: AsyncSession, company: Company) -> User:
    return await _add_user(session, company, "Adam Admin", Role.ADMIN)


@pytest.fixture
async def worker(session: AsyncSession, company: Company) -> User:
    return await _add_user(
        session,
        company,
        "Wendy Worker",
        Role.WORKER,
        phone="+15550100",
        worker_type=WorkerType.HOURLY.value,
        hourly_rate=Decimal("20.00"),
    )


@pytest.fixture
async def other_worker(session: AsyncSession, company: Company) -> User:
    return await _add_user(
        session,
        company,
        "Carl Contractor",
        Role.WORKER,
        worker_type=WorkerType.CONTRACTOR.value,
        hourly_rate=Decimal("30.00"),
    )


@pytest.fixture
async def job(session: AsyncSession, company: Company) -> Job:
    job = Job(
        id=uuid4(),
        company_id=company.id,
        name="Main Street Re-roof",
        latitude=JOB_LAT,
        longitude=JOB_LNG,
        geofence_radius_meters=100,
    )
    session.add(job)
    await session.commit()
    return job


def actor_for(user: User) -> Actor:
    return Actor(user_id=user.id, company_id=user.company_id, role=Role(user.role))


@pytest.fixture
def owner_actor(owner: User) -> Actor:
    return actor_for(owner)


@pytest.fixture
def admin_actor(admin: User) -> Actor:
    return actor_for(admin)


@pytest.fixture
def worker_actor(worker: User) -> Actor:
    return actor_for(worker)


@pytest.fixture
def make_entry(session: AsyncSession) -> Callable:
    """Factory for completed time entries (bypasses the clock flow)."""

    async def _make(
        user: User,
        clock_in: datetime,
        minutes: int = 480,
        job: Job | None = None,
        status: ApprovalStatus = ApprovalStatus.PENDING,
        **kwargs,
    ) -> TimeEntry:
        values = {
            "id": uuid4(),
            "company_id": user.company_id,
            "user_id": user.id,
            "job_id": job.id if job else None,
            "entry_type": EntryType.JOB_TIME.value if job else EntryType.TRAVEL_TIME.value,
            "worker_type": user.worker_type,
            "clock_in_time": clock_in,
            "clock_out_time": clock_in + timedelta(minutes=minutes),
            "duration_minutes": minutes,
            "regular_minutes": minutes,
            "hourly_rate": user.hourly_rate,
            "approval_status": status.value,
        }
        entry = TimeEntry(**{**values, **kwargs})
        session.add(entry)
        await session.commit()
        return entry

    return _make


# ============================================================================
# Collaborators and services
# ============================================================================


@pytest.fixture
def photo_store() -> InMemoryPhotoStore:
    return InMemoryPhotoStore()


@pytest.fixture
def face_comparator() -> StaticFaceComparator:
    return StaticFaceComparator()


@pytest.fixture
def notifier() -> LoggingNotifier:
    return LoggingNotifier()


@pytest.fixture
def audit(session: AsyncSession) -> AuditService:
    return AuditService(DatabaseAuditSink(session))


@pytest.fixture
def clock_service(
    session, audit, photo_store, face_comparator, notifier, test_settings, clock
) -> ClockService:
    return ClockService(
        session,
        audit,
        photo_store=photo_store,
        face_comparator=face_comparator,
        notifier=notifier,
        settings=test_settings,
        now=clock,
    )


@pytest.fixture
def approval_service(session, audit, test_settings, clock) -> ApprovalService:
    return ApprovalService(session, audit, settings=test_settings, now=clock)


@pytest.fixture
def pay_period_service(session, audit, test_settings, clock) -> PayPeriodService:
    return PayPeriodService(session, audit, settings=test_settings, now=clock)


@pytest.fixture
def timesheet_service(session, audit, clock) -> TimesheetService:
    return TimesheetService(session, audit, now=clock)


@pytest.fixture
def settings_service(session, audit) -> SettingsService:
    return SettingsService(session, audit)
