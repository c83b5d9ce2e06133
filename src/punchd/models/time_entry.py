"""Time entry and face verification models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from punchd.models.base import Base, TimestampMixin, uuid_pk
from punchd.models.enums import ApprovalStatus, ClockState, EntryType, check_in


class TimeEntry(Base, TimestampMixin):
    """One worker's single clock session."""

    __tablename__ = "time_entry"

    id: Mapped[UUID] = uuid_pk()
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.id", ondelete="CASCADE"),
        nullable=False,
    )
    job_id: Mapped[UUID | None] = mapped_column(ForeignKey("job.id"), nullable=True)
    entry_type: Mapped[str] = mapped_column(
        String, nullable=False, default=EntryType.JOB_TIME.value
    )
    worker_type: Mapped[str | None] = mapped_column(String, nullable=True)

    # Session
    clock_in_time: Mapped[datetime] = mapped_column(nullable=False)
    clock_out_time: Mapped[datetime | None] = mapped_column(nullable=True)
    clock_in_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    clock_in_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    clock_out_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    clock_out_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    clock_in_photo_url: Mapped[str | None] = mapped_column(String, nullable=True)
    clock_out_photo_url: Mapped[str | None] = mapped_column(String, nullable=True)

    # Breaks
    break_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_on_break: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    break_start_time: Mapped[datetime | None] = mapped_column(nullable=True)
    break_end_time: Mapped[datetime | None] = mapped_column(nullable=True)

    # Worked minutes (elapsed minus breaks), set at clock-out
    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Approval
    approval_status: Mapped[str] = mapped_column(
        String, nullable=False, default=ApprovalStatus.PENDING.value
    )
    approved_by_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("app_user.id"), nullable=True
    )
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Flags
    is_flagged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    flag_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_manual: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Pay snapshot and buckets
    hourly_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    regular_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    overtime_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    double_time_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    regular_pay: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    overtime_pay: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    double_time_pay: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    labor_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    # Locking and aggregation back-references
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    locked_at: Mapped[datetime | None] = mapped_column(nullable=True)
    pay_period_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("pay_period.id", ondelete="SET NULL"), nullable=True
    )
    timesheet_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("timesheet.id", ondelete="SET NULL"), nullable=True
    )

    __table_args__ = (
        CheckConstraint(check_in("entry_type", EntryType), name="time_entry_type_check"),
        CheckConstraint(
            check_in("approval_status", ApprovalStatus),
            name="time_entry_approval_status_check",
        ),
        CheckConstraint(
            "clock_out_time IS NULL OR clock_out_time > clock_in_time",
            name="time_entry_clock_out_after_in",
        ),
        CheckConstraint("break_minutes >= 0", name="time_entry_break_nonnegative"),
        # At most one open session per worker
        Index(
            "time_entry_active_session_unique",
            "user_id",
            unique=True,
            postgresql_where=text("clock_out_time IS NULL"),
            sqlite_where=text("clock_out_time IS NULL"),
        ),
        Index("time_entry_company_clock_in_idx", "company_id", "clock_in_time"),
    )

    @property
    def is_active(self) -> bool:
        return self.clock_out_time is None

    @property
    def clock_state(self) -> ClockState:
        if self.clock_out_time is not None:
            return ClockState.CLOCKED_OUT
        if self.is_on_break:
            return ClockState.ON_BREAK
        return ClockState.CLOCKED_IN

    @property
    def worked_minutes(self) -> int:
        """Sum of the pay buckets (equals duration_minutes once clocked out)."""
        return self.regular_minutes + self.overtime_minutes + self.double_time_minutes

    def add_flag(self, reason: str) -> None:
        """Append a flag reason, keeping earlier ones."""
        self.is_flagged = True
        self.flag_reason = f"{self.flag_reason}, {reason}" if self.flag_reason else reason


class FaceVerificationLog(Base, TimestampMixin):
    """Outcome of one clock-in face comparison."""

    __tablename__ = "face_verification_log"

    id: Mapped[UUID] = uuid_pk()
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.id", ondelete="CASCADE"),
        nullable=False,
    )
    # Null when the entry was rolled back after a mismatch
    time_entry_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("time_entry.id", ondelete="SET NULL"), nullable=True
    )
    submitted_photo_url: Mapped[str] = mapped_column(String, nullable=False)
    confidence_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    matched: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
