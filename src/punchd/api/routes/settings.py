"""Company overtime settings endpoints."""

from fastapi import APIRouter

from punchd.api.dependencies import CompanySettings, CurrentActor, DbSession
from punchd.api.schemas import ErrorResponse, OvertimeSettingsResponse, OvertimeSettingsUpdate

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/overtime", response_model=OvertimeSettingsResponse)
async def get_overtime_settings(
    actor: CurrentActor,
    company_settings: CompanySettings,
) -> OvertimeSettingsResponse:
    """Resolved overtime thresholds and multipliers for the company."""
    resolved = await company_settings.get_overtime_settings(actor.company_id)
    return OvertimeSettingsResponse.model_validate(resolved)


@router.patch(
    "/overtime",
    response_model=OvertimeSettingsResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def update_overtime_settings(
    db: DbSession,
    actor: CurrentActor,
    company_settings: CompanySettings,
    payload: OvertimeSettingsUpdate,
) -> OvertimeSettingsResponse:
    """Override policy fields present in the body; null resets a field."""
    resolved = await company_settings.update_overtime_policy(
        actor, **payload.model_dump(exclude_unset=True)
    )
    await db.commit()
    return OvertimeSettingsResponse.model_validate(resolved)
