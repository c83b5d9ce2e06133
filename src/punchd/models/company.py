"""Company, worker, job and company-configuration models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from punchd.models.base import Base, TimestampMixin, uuid_pk
from punchd.models.enums import PayPeriodType, Role, WorkerType, check_in


class Company(Base, TimestampMixin):
    """Tenant company."""

    __tablename__ = "company"

    id: Mapped[UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String, nullable=False)
    timezone: Mapped[str] = mapped_column(String, nullable=False, default="UTC")

    # Pay period recurrence (all null = no recurring schedule configured)
    pay_period_type: Mapped[str | None] = mapped_column(String, nullable=True)
    pay_period_start_day: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pay_period_anchor_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    custom_pay_period_days: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "pay_period_type IS NULL OR " + check_in("pay_period_type", PayPeriodType),
            name="company_pay_period_type_check",
        ),
    )


class User(Base, TimestampMixin):
    """Company member: owner, admin or worker."""

    __tablename__ = "app_user"

    id: Mapped[UUID] = uuid_pk()
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    role: Mapped[str] = mapped_column(String, nullable=False, default=Role.WORKER.value)
    worker_type: Mapped[str] = mapped_column(
        String, nullable=False, default=WorkerType.HOURLY.value
    )
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    reference_photo_url: Mapped[str | None] = mapped_column(String, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(check_in("role", Role), name="app_user_role_check"),
        CheckConstraint(check_in("worker_type", WorkerType), name="app_user_worker_type_check"),
    )

    @property
    def is_manager(self) -> bool:
        return self.role in (Role.OWNER.value, Role.ADMIN.value)


class Job(Base, TimestampMixin):
    """Job site with a circular geofence."""

    __tablename__ = "job"

    id: Mapped[UUID] = uuid_pk()
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    address: Mapped[str | None] = mapped_column(String, nullable=True)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    geofence_radius_meters: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    default_hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("geofence_radius_meters >= 0", name="job_radius_check"),
    )


class WorkerJobRate(Base, TimestampMixin):
    """Per-worker override of a job's hourly rate."""

    __tablename__ = "worker_job_rate"

    id: Mapped[UUID] = uuid_pk()
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.id", ondelete="CASCADE"),
        nullable=False,
    )
    job_id: Mapped[UUID] = mapped_column(
        ForeignKey("job.id", ondelete="CASCADE"),
        nullable=False,
    )
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "job_id", name="worker_job_rate_user_job_unique"),
    )


class OvertimePolicy(Base, TimestampMixin):
    """Versioned, typed overtime configuration for a company.

    Null fields fall back to the defaults in
    :class:`punchd.calculators.types.OvertimeSettings`.
    """

    __tablename__ = "overtime_policy"

    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.id", ondelete="CASCADE"),
        primary_key=True,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    daily_ot_threshold: Mapped[int | None] = mapped_column(Integer, nullable=True)
    daily_dt_threshold: Mapped[int | None] = mapped_column(Integer, nullable=True)
    weekly_ot_threshold: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ot_multiplier: Mapped[Decimal | None] = mapped_column(Numeric(4, 2), nullable=True)
    dt_multiplier: Mapped[Decimal | None] = mapped_column(Numeric(4, 2), nullable=True)
