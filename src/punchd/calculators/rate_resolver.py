"""Hourly rate resolution for time entries."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from punchd.models import Job, User, WorkerJobRate


class RateResolver:
    """Resolves the effective hourly rate for a worker on a job.

    Rate selection priority:
    1. Per-worker override for the job (worker_job_rate)
    2. The job's default hourly rate
    3. The worker's default hourly rate

    No rate at all is not an error: the entry is recorded with unknown pay.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def resolve(
        self,
        company_id: UUID,
        user_id: UUID,
        job_id: UUID | None = None,
    ) -> Decimal | None:
        """Resolve the hourly rate, or None when nothing is configured."""
        if job_id is not None:
            override = await self.session.scalar(
                select(WorkerJobRate.hourly_rate).where(
                    WorkerJobRate.company_id == company_id,
                    WorkerJobRate.user_id == user_id,
                    WorkerJobRate.job_id == job_id,
                )
            )
            if override is not None:
                return override

            job_rate = await self.session.scalar(
                select(Job.default_hourly_rate).where(
                    Job.id == job_id,
                    Job.company_id == company_id,
                )
            )
            if job_rate:
                return job_rate

        user_rate = await self.session.scalar(
            select(User.hourly_rate).where(
                User.id == user_id,
                User.company_id == company_id,
            )
        )
        return user_rate or None
