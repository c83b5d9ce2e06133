"""Pay period API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, Response, status

from punchd.api.dependencies import CompanySettings, CurrentActor, DbSession, PayPeriods
from punchd.api.schemas import (
    ErrorResponse,
    PayPeriodCreate,
    PayPeriodDetailsResponse,
    PayPeriodResponse,
    PayPeriodScheduleSchema,
    PayPeriodSettingsResponse,
    PayPeriodSummaryResponse,
    UnlockRequest,
)
from punchd.models import PayPeriodStatus

router = APIRouter(prefix="/pay-periods", tags=["pay-periods"])

PeriodId = Annotated[UUID, Path(description="Pay period ID")]


# ============================================================================
# Schedule settings
# ============================================================================


@router.get("/settings", response_model=PayPeriodSettingsResponse)
async def get_schedule(
    actor: CurrentActor,
    company_settings: CompanySettings,
) -> PayPeriodSettingsResponse:
    schedule = await company_settings.get_pay_period_schedule(actor.company_id)
    return PayPeriodSettingsResponse(
        schedule=PayPeriodScheduleSchema.model_validate(schedule) if schedule else None
    )


@router.patch(
    "/settings",
    response_model=PayPeriodSettingsResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def update_schedule(
    db: DbSession,
    actor: CurrentActor,
    company_settings: CompanySettings,
    payload: PayPeriodScheduleSchema,
) -> PayPeriodSettingsResponse:
    """Store the company's recurring pay period rule."""
    schedule = await company_settings.configure_pay_period_schedule(
        actor,
        period_type=payload.period_type,
        start_day=payload.start_day,
        anchor_date=payload.anchor_date,
        custom_days=payload.custom_days,
    )
    await db.commit()
    return PayPeriodSettingsResponse(schedule=PayPeriodScheduleSchema.model_validate(schedule))


# ============================================================================
# Pay period CRUD
# ============================================================================


@router.get(
    "",
    response_model=list[PayPeriodSummaryResponse],
    responses={403: {"model": ErrorResponse}},
)
async def list_periods(
    actor: CurrentActor,
    periods: PayPeriods,
    status_filter: Annotated[PayPeriodStatus | None, Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 52,
) -> list[PayPeriodSummaryResponse]:
    """Most recent periods first, with entry totals."""
    summaries = await periods.list_periods(actor, status=status_filter, limit=limit)
    return [PayPeriodSummaryResponse.model_validate(s) for s in summaries]


@router.get("/current", response_model=PayPeriodResponse | None)
async def get_current_period(
    db: DbSession,
    actor: CurrentActor,
    periods: PayPeriods,
) -> PayPeriodResponse | None:
    """The period covering now, created from the schedule on first access."""
    period = await periods.ensure_current_period(actor.company_id)
    await db.commit()
    return PayPeriodResponse.model_validate(period) if period is not None else None


@router.post(
    "",
    response_model=PayPeriodResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def create_period(
    db: DbSession,
    actor: CurrentActor,
    periods: PayPeriods,
    payload: PayPeriodCreate,
) -> PayPeriodResponse:
    period = await periods.create_period(actor, payload.start_date, payload.end_date)
    await db.commit()
    return PayPeriodResponse.model_validate(period)


@router.get(
    "/{period_id}",
    response_model=PayPeriodDetailsResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_period(
    actor: CurrentActor,
    periods: PayPeriods,
    period_id: PeriodId,
) -> PayPeriodDetailsResponse:
    """Period with its entries grouped per worker."""
    details = await periods.get_period_details(actor, period_id)
    return PayPeriodDetailsResponse.model_validate(details)


@router.delete(
    "/{period_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_period(
    db: DbSession,
    actor: CurrentActor,
    periods: PayPeriods,
    period_id: PeriodId,
) -> Response:
    await periods.delete_period(actor, period_id)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Lifecycle transitions
# ============================================================================


@router.post(
    "/{period_id}/lock",
    response_model=PayPeriodResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def lock_period(
    db: DbSession,
    actor: CurrentActor,
    periods: PayPeriods,
    period_id: PeriodId,
) -> PayPeriodResponse:
    """Lock the period and every entry it covers."""
    period = await periods.lock_period(actor, period_id)
    await db.commit()
    return PayPeriodResponse.model_validate(period)


@router.post(
    "/{period_id}/unlock",
    response_model=PayPeriodResponse,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def unlock_period(
    db: DbSession,
    actor: CurrentActor,
    periods: PayPeriods,
    period_id: PeriodId,
    payload: UnlockRequest,
) -> PayPeriodResponse:
    """Owner override: reopen a locked or exported period."""
    period = await periods.unlock_period(actor, period_id, payload.reason)
    await db.commit()
    return PayPeriodResponse.model_validate(period)


@router.post(
    "/{period_id}/mark-exported",
    response_model=PayPeriodResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def mark_exported(
    db: DbSession,
    actor: CurrentActor,
    periods: PayPeriods,
    period_id: PeriodId,
) -> PayPeriodResponse:
    period = await periods.mark_exported(actor, period_id)
    await db.commit()
    return PayPeriodResponse.model_validate(period)


@router.get(
    "/{period_id}/export",
    response_class=Response,
    responses={
        200: {"content": {"text/csv": {}}},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def export_period(
    actor: CurrentActor,
    periods: PayPeriods,
    period_id: PeriodId,
) -> Response:
    """Payroll spreadsheet of a locked or exported period."""
    filename, content = await periods.export_period_csv(actor, period_id)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
