"""Explicit request actor passed into every service operation."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from punchd.errors import Forbidden
from punchd.models.enums import Role

MANAGER_ROLES = frozenset({Role.OWNER, Role.ADMIN})


@dataclass(frozen=True)
class Actor:
    """Who is performing an operation, and in which company."""

    user_id: UUID
    company_id: UUID
    role: Role

    @property
    def is_owner(self) -> bool:
        return self.role == Role.OWNER

    @property
    def is_manager(self) -> bool:
        return self.role in MANAGER_ROLES

    def require_manager(self, action: str) -> None:
        """Raise Forbidden unless the actor is an owner or admin."""
        if not self.is_manager:
            raise Forbidden(f"Only owners and admins can {action}", role=self.role.value)

    def require_owner(self, action: str) -> None:
        """Raise Forbidden unless the actor is an owner."""
        if not self.is_owner:
            raise Forbidden(f"Only owners can {action}", role=self.role.value)

    def can_view_worker(self, worker_id: UUID) -> bool:
        return self.is_manager or self.user_id == worker_id
