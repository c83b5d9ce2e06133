"""Time entry API endpoints: clock sessions, approvals and corrections."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from punchd.api.dependencies import Approvals, Clock, CurrentActor, DbSession
from punchd.api.schemas import (
    ApprovalStatsResponse,
    BulkApproveRequest,
    BulkRejectRequest,
    BulkResultResponse,
    ClockInRequest,
    ClockOutRequest,
    ClockStatusResponse,
    ErrorResponse,
    ManualEntryRequest,
    OvertimeSummaryResponse,
    RejectRequest,
    TimeEntryResponse,
    TimeEntryUpdate,
)
from punchd.models import ApprovalStatus

router = APIRouter(prefix="/time-entries", tags=["time-entries"])

EntryId = Annotated[UUID, Path(description="Time entry ID")]


# ============================================================================
# Clock session
# ============================================================================


@router.post(
    "/clock-in",
    response_model=TimeEntryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def clock_in(
    db: DbSession,
    actor: CurrentActor,
    clock: Clock,
    payload: ClockInRequest,
) -> TimeEntryResponse:
    """Open a clock session after geofence and identity checks."""
    entry = await clock.clock_in(
        actor,
        entry_type=payload.entry_type,
        latitude=payload.latitude,
        longitude=payload.longitude,
        job_id=payload.job_id,
        photo=payload.photo,
    )
    await db.commit()
    return TimeEntryResponse.model_validate(entry)


@router.post(
    "/clock-out",
    response_model=TimeEntryResponse,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def clock_out(
    db: DbSession,
    actor: CurrentActor,
    clock: Clock,
    payload: ClockOutRequest,
) -> TimeEntryResponse:
    """Close the open session and compute pay buckets."""
    entry = await clock.clock_out(
        actor,
        latitude=payload.latitude,
        longitude=payload.longitude,
        photo=payload.photo,
    )
    await db.commit()
    return TimeEntryResponse.model_validate(entry)


@router.post(
    "/break/start",
    response_model=TimeEntryResponse,
    responses={409: {"model": ErrorResponse}},
)
async def start_break(db: DbSession, actor: CurrentActor, clock: Clock) -> TimeEntryResponse:
    entry = await clock.start_break(actor)
    await db.commit()
    return TimeEntryResponse.model_validate(entry)


@router.post(
    "/break/end",
    response_model=TimeEntryResponse,
    responses={409: {"model": ErrorResponse}},
)
async def end_break(db: DbSession, actor: CurrentActor, clock: Clock) -> TimeEntryResponse:
    entry = await clock.end_break(actor)
    await db.commit()
    return TimeEntryResponse.model_validate(entry)


@router.get("/status", response_model=ClockStatusResponse)
async def get_status(actor: CurrentActor, clock: Clock) -> ClockStatusResponse:
    """Current clock state of the acting worker."""
    current = await clock.get_current_status(actor)
    return ClockStatusResponse(
        state=current.state,
        is_clocked_in=current.is_clocked_in,
        is_on_break=current.is_on_break,
        active_entry=(
            TimeEntryResponse.model_validate(current.active_entry)
            if current.active_entry is not None
            else None
        ),
    )


@router.get(
    "",
    response_model=list[TimeEntryResponse],
    responses={403: {"model": ErrorResponse}},
)
async def list_entries(
    actor: CurrentActor,
    clock: Clock,
    user_id: Annotated[UUID | None, Query()] = None,
    job_id: Annotated[UUID | None, Query()] = None,
    approval_status: Annotated[ApprovalStatus | None, Query()] = None,
    start: Annotated[datetime | None, Query()] = None,
    end: Annotated[datetime | None, Query()] = None,
) -> list[TimeEntryResponse]:
    """List time entries, newest first. Workers only see their own."""
    entries = await clock.list_entries(
        actor,
        worker_id=user_id,
        job_id=job_id,
        approval_status=approval_status,
        start=start,
        end=end,
    )
    return [TimeEntryResponse.model_validate(e) for e in entries]


# ============================================================================
# Approvals
# ============================================================================


@router.get(
    "/pending",
    response_model=list[TimeEntryResponse],
    responses={403: {"model": ErrorResponse}},
)
async def list_pending(actor: CurrentActor, approvals: Approvals) -> list[TimeEntryResponse]:
    entries = await approvals.list_pending_approvals(actor)
    return [TimeEntryResponse.model_validate(e) for e in entries]


@router.get(
    "/stats",
    response_model=ApprovalStatsResponse,
    responses={403: {"model": ErrorResponse}},
)
async def approval_stats(actor: CurrentActor, approvals: Approvals) -> ApprovalStatsResponse:
    stats = await approvals.approval_stats(actor)
    return ApprovalStatsResponse.model_validate(stats)


@router.get(
    "/overtime-summary",
    response_model=OvertimeSummaryResponse,
    responses={403: {"model": ErrorResponse}},
)
async def overtime_summary(
    actor: CurrentActor,
    approvals: Approvals,
    start: Annotated[datetime | None, Query()] = None,
    end: Annotated[datetime | None, Query()] = None,
) -> OvertimeSummaryResponse:
    """Regular, overtime and double-time totals over a date range."""
    summary = await approvals.overtime_summary(actor, start=start, end=end)
    return OvertimeSummaryResponse.model_validate(summary)


@router.post(
    "/bulk-approve",
    response_model=BulkResultResponse,
    responses={403: {"model": ErrorResponse}},
)
async def bulk_approve(
    db: DbSession,
    actor: CurrentActor,
    approvals: Approvals,
    payload: BulkApproveRequest,
) -> BulkResultResponse:
    result = await approvals.bulk_approve(actor, payload.entry_ids)
    await db.commit()
    return BulkResultResponse.model_validate(result)


@router.post(
    "/bulk-reject",
    response_model=BulkResultResponse,
    responses={403: {"model": ErrorResponse}},
)
async def bulk_reject(
    db: DbSession,
    actor: CurrentActor,
    approvals: Approvals,
    payload: BulkRejectRequest,
) -> BulkResultResponse:
    result = await approvals.bulk_reject(actor, payload.entry_ids, payload.reason)
    await db.commit()
    return BulkResultResponse.model_validate(result)


@router.post(
    "/manual",
    response_model=TimeEntryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def create_manual_entry(
    db: DbSession,
    actor: CurrentActor,
    approvals: Approvals,
    payload: ManualEntryRequest,
) -> TimeEntryResponse:
    """Record a back-dated, pre-approved entry for a worker."""
    entry = await approvals.create_manual_entry(
        actor,
        worker_id=payload.user_id,
        job_id=payload.job_id,
        work_date=payload.work_date,
        clock_in_time=payload.clock_in,
        clock_out_time=payload.clock_out,
        break_minutes=payload.break_minutes,
        notes=payload.notes,
    )
    await db.commit()
    return TimeEntryResponse.model_validate(entry)


@router.patch(
    "/{entry_id}",
    response_model=TimeEntryResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_entry(
    db: DbSession,
    actor: CurrentActor,
    approvals: Approvals,
    entry_id: EntryId,
    payload: TimeEntryUpdate,
) -> TimeEntryResponse:
    entry = await approvals.update_entry(
        actor,
        entry_id,
        clock_in_time=payload.clock_in_time,
        clock_out_time=payload.clock_out_time,
        break_minutes=payload.break_minutes,
        notes=payload.notes,
    )
    await db.commit()
    return TimeEntryResponse.model_validate(entry)


@router.post(
    "/{entry_id}/approve",
    response_model=TimeEntryResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_entry(
    db: DbSession,
    actor: CurrentActor,
    approvals: Approvals,
    entry_id: EntryId,
) -> TimeEntryResponse:
    entry = await approvals.approve_entry(actor, entry_id)
    await db.commit()
    return TimeEntryResponse.model_validate(entry)


@router.post(
    "/{entry_id}/reject",
    response_model=TimeEntryResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def reject_entry(
    db: DbSession,
    actor: CurrentActor,
    approvals: Approvals,
    entry_id: EntryId,
    payload: RejectRequest,
) -> TimeEntryResponse:
    entry = await approvals.reject_entry(actor, entry_id, payload.reason)
    await db.commit()
    return TimeEntryResponse.model_validate(entry)
