"""Pydantic schemas for API request/response models."""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from punchd.models.enums import ClockState, EntryType, PayPeriodType


# ============================================================================
# Time entry schemas
# ============================================================================


class TimeEntryResponse(BaseModel):
    """Schema for time entry response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    user_id: UUID
    job_id: UUID | None = None
    entry_type: str
    worker_type: str | None = None
    clock_in_time: datetime
    clock_out_time: datetime | None = None
    clock_in_latitude: float | None = None
    clock_in_longitude: float | None = None
    clock_out_latitude: float | None = None
    clock_out_longitude: float | None = None
    clock_in_photo_url: str | None = None
    clock_out_photo_url: str | None = None
    break_minutes: int
    is_on_break: bool
    duration_minutes: int | None = None
    approval_status: str
    approved_by_id: UUID | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None
    is_flagged: bool
    flag_reason: str | None = None
    notes: str | None = None
    is_manual: bool
    hourly_rate: Decimal | None = None
    regular_minutes: int
    overtime_minutes: int
    double_time_minutes: int
    regular_pay: Decimal
    overtime_pay: Decimal
    double_time_pay: Decimal
    labor_cost: Decimal
    is_locked: bool
    locked_at: datetime | None = None
    pay_period_id: UUID | None = None
    timesheet_id: UUID | None = None


class ClockInRequest(BaseModel):
    """Schema for clock-in request."""

    entry_type: EntryType = EntryType.JOB_TIME
    job_id: UUID | None = None
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    photo: str | None = None


class ClockOutRequest(BaseModel):
    """Schema for clock-out request."""

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    photo: str | None = None


class ClockStatusResponse(BaseModel):
    """Schema for the current clock state of a worker."""

    state: ClockState
    is_clocked_in: bool
    is_on_break: bool
    active_entry: TimeEntryResponse | None = None


class ManualEntryRequest(BaseModel):
    """Schema for a manager-created, back-dated entry."""

    user_id: UUID
    job_id: UUID
    work_date: date
    clock_in: time
    clock_out: time
    break_minutes: int = Field(default=0, ge=0)
    notes: str | None = None


class TimeEntryUpdate(BaseModel):
    """Schema for correcting a time entry."""

    clock_in_time: datetime | None = None
    clock_out_time: datetime | None = None
    break_minutes: int | None = Field(default=None, ge=0)
    notes: str | None = None


class RejectRequest(BaseModel):
    reason: str | None = None


class BulkApproveRequest(BaseModel):
    entry_ids: list[UUID] = Field(min_length=1)


class BulkRejectRequest(BaseModel):
    entry_ids: list[UUID] = Field(min_length=1)
    reason: str | None = None


class BulkResultResponse(BaseModel):
    """Schema for bulk approve/reject outcome."""

    model_config = ConfigDict(from_attributes=True)

    succeeded: int
    failed: int
    errors: list[str]


class ApprovalStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    pending: int
    approved: int
    rejected: int


class OvertimeTotalsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    regular_minutes: int
    overtime_minutes: int
    double_time_minutes: int
    regular_hours: Decimal
    overtime_hours: Decimal
    double_time_hours: Decimal
    regular_pay: Decimal
    overtime_pay: Decimal
    double_time_pay: Decimal
    total_pay: Decimal


class WorkerOvertimeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    name: str
    totals: OvertimeTotalsResponse


class OvertimeSummaryResponse(BaseModel):
    """Schema for overtime totals over a date range."""

    model_config = ConfigDict(from_attributes=True)

    totals: OvertimeTotalsResponse
    by_worker: list[WorkerOvertimeResponse]
    entry_count: int


# ============================================================================
# Pay period schemas
# ============================================================================


class PayPeriodResponse(BaseModel):
    """Schema for pay period response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    start_date: datetime
    end_date: datetime
    status: str
    auto_generated: bool
    locked_at: datetime | None = None
    locked_by_id: UUID | None = None
    exported_at: datetime | None = None
    exported_by_id: UUID | None = None
    override_at: datetime | None = None
    override_by_id: UUID | None = None
    override_reason: str | None = None
    created_at: datetime


class PeriodTotalsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    entry_count: int
    pending_count: int
    approved_count: int
    total_minutes: int
    regular_minutes: int
    overtime_minutes: int
    double_time_minutes: int
    labor_cost: Decimal


class PayPeriodSummaryResponse(BaseModel):
    """Schema for a pay period with entry totals."""

    model_config = ConfigDict(from_attributes=True)

    period: PayPeriodResponse
    totals: PeriodTotalsResponse


class WorkerPeriodTotalsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    name: str
    entries: list[TimeEntryResponse]
    totals: PeriodTotalsResponse


class PayPeriodDetailsResponse(BaseModel):
    """Schema for pay period details grouped per worker."""

    model_config = ConfigDict(from_attributes=True)

    period: PayPeriodResponse
    entries: list[TimeEntryResponse]
    by_worker: list[WorkerPeriodTotalsResponse]
    summary: PeriodTotalsResponse


class PayPeriodCreate(BaseModel):
    """Schema for creating a manual pay period (whole days, inclusive)."""

    start_date: date
    end_date: date


class UnlockRequest(BaseModel):
    reason: str


class PayPeriodScheduleSchema(BaseModel):
    """Schema for a company's pay period recurrence rule."""

    model_config = ConfigDict(from_attributes=True)

    period_type: PayPeriodType
    start_day: int | None = None
    anchor_date: date | None = None
    custom_days: int | None = None


class PayPeriodSettingsResponse(BaseModel):
    schedule: PayPeriodScheduleSchema | None = None


# ============================================================================
# Timesheet schemas
# ============================================================================


class TimesheetResponse(BaseModel):
    """Schema for timesheet response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    user_id: UUID
    name: str | None = None
    period_start: datetime
    period_end: datetime
    total_minutes: int
    total_break_minutes: int
    status: str
    submitted_at: datetime | None = None
    reviewed_at: datetime | None = None
    reviewed_by_id: UUID | None = None
    review_notes: str | None = None
    created_at: datetime


class TimesheetDetailResponse(BaseModel):
    """Schema for a timesheet with its linked entries."""

    model_config = ConfigDict(from_attributes=True)

    timesheet: TimesheetResponse
    entries: list[TimeEntryResponse]


class TimesheetCreate(BaseModel):
    """Schema for creating a timesheet from entry ids or a date range."""

    entry_ids: list[UUID] | None = None
    start_date: date | None = None
    end_date: date | None = None
    name: str | None = None


class TimesheetUpdate(BaseModel):
    entry_ids: list[UUID] | None = None
    name: str | None = None


class TimesheetReview(BaseModel):
    status: Literal["APPROVED", "REJECTED"]
    notes: str | None = None


# ============================================================================
# Settings schemas
# ============================================================================


class OvertimeSettingsResponse(BaseModel):
    """Schema for resolved overtime settings."""

    model_config = ConfigDict(from_attributes=True)

    daily_ot_threshold: int
    daily_dt_threshold: int
    weekly_ot_threshold: int
    ot_multiplier: Decimal
    dt_multiplier: Decimal


class OvertimeSettingsUpdate(BaseModel):
    """Field overrides; an explicit null resets a field to its default."""

    daily_ot_threshold: int | None = None
    daily_dt_threshold: int | None = None
    weekly_ot_threshold: int | None = None
    ot_multiplier: Decimal | None = None
    dt_multiplier: Decimal | None = None


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    model_config = ConfigDict(extra="allow")

    detail: str
    code: str | None = None
