"""Audit trail recording."""

from __future__ import annotations

import json
import logging
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from punchd.integrations.base import AuditSink
from punchd.models import AuditEvent

logger = logging.getLogger(__name__)


class DatabaseAuditSink:
    """Audit sink writing AuditEvent rows in the caller's transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(
        self,
        company_id: UUID,
        actor_id: UUID | None,
        action: str,
        target_type: str,
        target_id: UUID | None,
        details: dict[str, Any] | None = None,
    ) -> None:
        event = AuditEvent(
            company_id=company_id,
            actor_user_id=actor_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            details=_jsonable(details) if details is not None else None,
        )
        self.session.add(event)


class AuditService:
    """Records audit events without ever failing the primary operation."""

    def __init__(self, sink: AuditSink):
        self.sink = sink

    async def record(
        self,
        company_id: UUID,
        actor_id: UUID | None,
        action: str,
        target_type: str,
        target_id: UUID | None,
        details: dict[str, Any] | None = None,
    ) -> None:
        try:
            await self.sink.record(company_id, actor_id, action, target_type, target_id, details)
        except Exception:
            logger.exception(
                "Failed to record audit event %s for %s %s", action, target_type, target_id
            )


def _jsonable(details: dict[str, Any]) -> dict[str, Any]:
    """Make UUIDs, datetimes and Decimals JSON-safe (sorted keys for stable output)."""
    return json.loads(json.dumps(details, sort_keys=True, default=str))
