"""Company-scoped time-accounting configuration."""

from __future__ import annotations

import logging
from dataclasses import fields, replace
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from punchd.calculators.periods import compute_period
from punchd.calculators.types import OvertimeSettings, PayPeriodSchedule
from punchd.errors import InvalidPolicy, NotFoundError
from punchd.models import Company, OvertimePolicy, PayPeriodType, utcnow
from punchd.services.actor import Actor
from punchd.services.audit_service import AuditService

logger = logging.getLogger(__name__)

POLICY_FIELDS = tuple(f.name for f in fields(OvertimeSettings))


class SettingsService:
    """Reads and updates the overtime policy and pay-period schedule."""

    def __init__(self, session: AsyncSession, audit: AuditService):
        self.session = session
        self.audit = audit

    async def get_overtime_settings(self, company_id: UUID) -> OvertimeSettings:
        """Resolve the company's overtime policy, filling unset fields with defaults."""
        policy = await self.session.get(OvertimePolicy, company_id)
        settings = OvertimeSettings()
        if policy is None:
            return settings

        overrides = {
            name: getattr(policy, name)
            for name in POLICY_FIELDS
            if getattr(policy, name) is not None
        }
        return replace(settings, **overrides)

    async def update_overtime_policy(self, actor: Actor, **overrides: Any) -> OvertimeSettings:
        """Override individual policy fields; None resets a field to its default.

        Unknown field names are rejected. The policy version is bumped on
        every update.
        """
        actor.require_manager("change overtime settings")

        unknown = set(overrides) - set(POLICY_FIELDS)
        if unknown:
            raise InvalidPolicy(
                f"Unknown overtime settings: {', '.join(sorted(unknown))}",
                fields=sorted(unknown),
            )

        changes = {
            name: Decimal(str(value)) if value is not None and name.endswith("multiplier") else value
            for name, value in overrides.items()
        }

        policy = await self.session.get(OvertimePolicy, actor.company_id)
        merged = {name: getattr(policy, name) if policy else None for name in POLICY_FIELDS}
        merged.update(changes)
        resolved = replace(
            OvertimeSettings(), **{n: v for n, v in merged.items() if v is not None}
        )
        _validate_overtime(resolved)

        if policy is None:
            policy = OvertimePolicy(company_id=actor.company_id, version=0)
            self.session.add(policy)
        for name, value in changes.items():
            setattr(policy, name, value)
        policy.version = (policy.version or 0) + 1
        await self.session.flush()

        await self.audit.record(
            actor.company_id,
            actor.user_id,
            "OVERTIME_POLICY_UPDATED",
            "Company",
            actor.company_id,
            {"version": policy.version, "changes": overrides},
        )
        logger.info("Overtime policy for company %s updated to v%s", actor.company_id, policy.version)
        return resolved

    async def get_pay_period_schedule(self, company_id: UUID) -> PayPeriodSchedule | None:
        """Return the recurring schedule, or None when none is configured."""
        company = await self._get_company(company_id)
        if company.pay_period_type is None:
            return None
        return PayPeriodSchedule(
            period_type=company.pay_period_type,
            start_day=company.pay_period_start_day,
            anchor_date=company.pay_period_anchor_date,
            custom_days=company.custom_pay_period_days,
        )

    async def configure_pay_period_schedule(
        self,
        actor: Actor,
        period_type: PayPeriodType | str,
        start_day: int | None = None,
        anchor_date: date | None = None,
        custom_days: int | None = None,
    ) -> PayPeriodSchedule:
        """Store a recurring pay-period rule after validating it.

        Raises:
            InvalidConfiguration: the rule cannot produce a period.
        """
        actor.require_manager("configure pay periods")

        # Raises InvalidConfiguration for missing or out-of-range parameters
        compute_period(period_type, start_day, anchor_date, custom_days, utcnow())

        company = await self._get_company(actor.company_id)
        company.pay_period_type = PayPeriodType(period_type).value
        company.pay_period_start_day = start_day
        company.pay_period_anchor_date = anchor_date
        company.custom_pay_period_days = custom_days
        await self.session.flush()

        schedule = PayPeriodSchedule(
            period_type=company.pay_period_type,
            start_day=start_day,
            anchor_date=anchor_date,
            custom_days=custom_days,
        )
        await self.audit.record(
            actor.company_id,
            actor.user_id,
            "PAY_PERIOD_SCHEDULE_UPDATED",
            "Company",
            actor.company_id,
            {
                "period_type": schedule.period_type,
                "start_day": start_day,
                "anchor_date": anchor_date,
                "custom_days": custom_days,
            },
        )
        return schedule

    async def _get_company(self, company_id: UUID) -> Company:
        company = await self.session.get(Company, company_id)
        if company is None:
            raise NotFoundError("Company", company_id)
        return company


def _validate_overtime(settings: OvertimeSettings) -> None:
    if settings.daily_ot_threshold <= 0 or settings.weekly_ot_threshold <= 0:
        raise InvalidPolicy("Overtime thresholds must be positive")
    if settings.daily_dt_threshold < settings.daily_ot_threshold:
        raise InvalidPolicy(
            "Daily double-time threshold must not be below the daily overtime threshold",
            daily_ot_threshold=settings.daily_ot_threshold,
            daily_dt_threshold=settings.daily_dt_threshold,
        )
    if settings.ot_multiplier < 1 or settings.dt_multiplier < 1:
        raise InvalidPolicy("Pay multipliers must be at least 1")
