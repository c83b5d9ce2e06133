"""Protocols for the external collaborators used at clock-in.

Photo storage, face comparison and admin notification are provided by
third-party services. The engine only depends on these protocols; the
adapters live outside the core (see :mod:`punchd.integrations.stubs` for
in-process implementations).
"""

from __future__ import annotations

from typing import Any, Protocol
from uuid import UUID


class PhotoStore(Protocol):
    """Durable storage for clock-in/clock-out photos."""

    async def store(self, photo: str, owner_id: UUID, purpose: str) -> str:
        """Store a photo and return its URL.

        Args:
            photo: data URI or URL of the submitted photo.
            owner_id: worker the photo belongs to.
            purpose: ``"clock-in"`` or ``"clock-out"``.

        Raises:
            Exception: any failure; callers downgrade it to a flag.
        """
        ...


class FaceComparator(Protocol):
    """Face similarity service."""

    async def compare(self, reference_url: str, candidate_url: str) -> float:
        """Return a match confidence in [0, 100].

        Raises:
            Exception: service failure (distinct from a low score).
        """
        ...


class Notifier(Protocol):
    """Out-of-band notification of company admins and owners."""

    async def notify_admins(self, company_id: UUID, subject: str, message: str) -> None:
        """Send a best-effort notification."""
        ...


class AuditSink(Protocol):
    """Destination for audit records of state-changing operations."""

    async def record(
        self,
        company_id: UUID,
        actor_id: UUID | None,
        action: str,
        target_type: str,
        target_id: UUID | None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Persist one audit record."""
        ...
