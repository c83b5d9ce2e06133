"""Timesheet API endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, Response, status

from punchd.api.dependencies import CurrentActor, DbSession, Timesheets
from punchd.api.schemas import (
    ErrorResponse,
    TimeEntryResponse,
    TimesheetCreate,
    TimesheetDetailResponse,
    TimesheetResponse,
    TimesheetReview,
    TimesheetUpdate,
)
from punchd.models import WorkerType

router = APIRouter(prefix="/timesheets", tags=["timesheets"])

TimesheetId = Annotated[UUID, Path(description="Timesheet ID")]


@router.get("/mine", response_model=list[TimesheetDetailResponse])
async def list_my_timesheets(
    actor: CurrentActor,
    timesheets: Timesheets,
) -> list[TimesheetDetailResponse]:
    items = await timesheets.list_my_timesheets(actor)
    return [TimesheetDetailResponse.model_validate(item) for item in items]


@router.get(
    "/pending",
    response_model=list[TimesheetDetailResponse],
    responses={403: {"model": ErrorResponse}},
)
async def list_pending_timesheets(
    actor: CurrentActor,
    timesheets: Timesheets,
) -> list[TimesheetDetailResponse]:
    """Submitted timesheets awaiting review, oldest first."""
    items = await timesheets.list_pending_timesheets(actor)
    return [TimesheetDetailResponse.model_validate(item) for item in items]


@router.get("/unsubmitted", response_model=list[TimeEntryResponse])
async def list_unsubmitted_entries(
    actor: CurrentActor,
    timesheets: Timesheets,
    start_date: Annotated[date | None, Query()] = None,
    end_date: Annotated[date | None, Query()] = None,
    worker_type: Annotated[WorkerType | None, Query()] = None,
) -> list[TimeEntryResponse]:
    """The acting worker's completed entries not yet in a timesheet."""
    entries = await timesheets.list_unsubmitted_entries(
        actor,
        start=start_date,
        end=end_date,
        worker_type=worker_type.value if worker_type else None,
    )
    return [TimeEntryResponse.model_validate(e) for e in entries]


@router.post(
    "",
    response_model=TimesheetDetailResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_timesheet(
    db: DbSession,
    actor: CurrentActor,
    timesheets: Timesheets,
    payload: TimesheetCreate,
) -> TimesheetDetailResponse:
    """Create a draft from explicit entry ids or from a date range."""
    created = await timesheets.create_timesheet(
        actor,
        entry_ids=payload.entry_ids,
        start=payload.start_date,
        end=payload.end_date,
        name=payload.name,
    )
    await db.commit()
    return TimesheetDetailResponse.model_validate(created)


@router.get(
    "/{timesheet_id}",
    response_model=TimesheetDetailResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_timesheet(
    actor: CurrentActor,
    timesheets: Timesheets,
    timesheet_id: TimesheetId,
) -> TimesheetDetailResponse:
    item = await timesheets.get_timesheet(actor, timesheet_id)
    return TimesheetDetailResponse.model_validate(item)


@router.patch(
    "/{timesheet_id}",
    response_model=TimesheetDetailResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_timesheet(
    db: DbSession,
    actor: CurrentActor,
    timesheets: Timesheets,
    timesheet_id: TimesheetId,
    payload: TimesheetUpdate,
) -> TimesheetDetailResponse:
    updated = await timesheets.update_timesheet(
        actor, timesheet_id, entry_ids=payload.entry_ids, name=payload.name
    )
    await db.commit()
    return TimesheetDetailResponse.model_validate(updated)


@router.delete(
    "/{timesheet_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_timesheet(
    db: DbSession,
    actor: CurrentActor,
    timesheets: Timesheets,
    timesheet_id: TimesheetId,
) -> Response:
    await timesheets.delete_timesheet(actor, timesheet_id)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{timesheet_id}/submit",
    response_model=TimesheetResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def submit_timesheet(
    db: DbSession,
    actor: CurrentActor,
    timesheets: Timesheets,
    timesheet_id: TimesheetId,
) -> TimesheetResponse:
    timesheet = await timesheets.submit_timesheet(actor, timesheet_id)
    await db.commit()
    return TimesheetResponse.model_validate(timesheet)


@router.post(
    "/{timesheet_id}/withdraw",
    response_model=TimesheetResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def withdraw_timesheet(
    db: DbSession,
    actor: CurrentActor,
    timesheets: Timesheets,
    timesheet_id: TimesheetId,
) -> TimesheetResponse:
    timesheet = await timesheets.withdraw_timesheet(actor, timesheet_id)
    await db.commit()
    return TimesheetResponse.model_validate(timesheet)


@router.post(
    "/{timesheet_id}/review",
    response_model=TimesheetDetailResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def review_timesheet(
    db: DbSession,
    actor: CurrentActor,
    timesheets: Timesheets,
    timesheet_id: TimesheetId,
    payload: TimesheetReview,
) -> TimesheetDetailResponse:
    """Approve (cascading to entries) or reject (unlinking entries) a submission."""
    reviewed = await timesheets.review_timesheet(
        actor, timesheet_id, status=payload.status, notes=payload.notes
    )
    await db.commit()
    return TimesheetDetailResponse.model_validate(reviewed)
