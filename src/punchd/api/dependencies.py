"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from punchd.database import init_db
from punchd.models.enums import Role
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


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency.

    Routes commit explicitly; anything left uncommitted is rolled back.
    """
    factory = request.app.state.session_factory
    if factory is None:
        _, factory = init_db()
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


def _parse_uuid(value: str | None, header: str) -> UUID:
    if not value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{header} header is required",
        )
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header} format",
        )


async def get_actor(
    x_company_id: Annotated[str | None, Header()] = None,
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> Actor:
    """Build the request actor from identity headers set by the auth gateway."""
    company_id = _parse_uuid(x_company_id, "X-Company-ID")
    user_id = _parse_uuid(x_user_id, "X-User-ID")
    try:
        role = Role((x_user_role or "").upper())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-User-Role",
        )
    return Actor(user_id=user_id, company_id=company_id, role=role)


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
CurrentActor = Annotated[Actor, Depends(get_actor)]


def get_audit_service(db: DbSession) -> AuditService:
    return AuditService(DatabaseAuditSink(db))


Audit = Annotated[AuditService, Depends(get_audit_service)]


def get_clock_service(request: Request, db: DbSession, audit: Audit) -> ClockService:
    state = request.app.state
    return ClockService(
        db,
        audit,
        photo_store=state.photo_store,
        face_comparator=state.face_comparator,
        notifier=state.notifier,
        settings=state.settings,
        now=state.clock,
    )


def get_approval_service(request: Request, db: DbSession, audit: Audit) -> ApprovalService:
    state = request.app.state
    return ApprovalService(db, audit, settings=state.settings, now=state.clock)


def get_pay_period_service(request: Request, db: DbSession, audit: Audit) -> PayPeriodService:
    state = request.app.state
    return PayPeriodService(db, audit, settings=state.settings, now=state.clock)


def get_timesheet_service(request: Request, db: DbSession, audit: Audit) -> TimesheetService:
    return TimesheetService(db, audit, now=request.app.state.clock)


def get_settings_service(db: DbSession, audit: Audit) -> SettingsService:
    return SettingsService(db, audit)


Clock = Annotated[ClockService, Depends(get_clock_service)]
Approvals = Annotated[ApprovalService, Depends(get_approval_service)]
PayPeriods = Annotated[PayPeriodService, Depends(get_pay_period_service)]
Timesheets = Annotated[TimesheetService, Depends(get_timesheet_service)]
CompanySettings = Annotated[SettingsService, Depends(get_settings_service)]
