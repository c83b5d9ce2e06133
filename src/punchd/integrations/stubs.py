"""In-process collaborator adapters for development and tests."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import UUID, uuid4

logger = logging.getLogger(__name__)


@dataclass
class InMemoryPhotoStore:
    """Photo store that keeps photos in a dict and hands out memory:// URLs."""

    fail: bool = False
    photos: dict[str, str] = field(default_factory=dict)

    async def store(self, photo: str, owner_id: UUID, purpose: str) -> str:
        if self.fail:
            raise RuntimeError("photo store unavailable")
        url = f"memory://{purpose}/{owner_id}/{uuid4()}.jpg"
        self.photos[url] = photo
        return url


@dataclass
class StaticFaceComparator:
    """Face comparator returning a fixed confidence score."""

    confidence: float = 100.0
    fail: bool = False
    calls: list[tuple[str, str]] = field(default_factory=list)

    async def compare(self, reference_url: str, candidate_url: str) -> float:
        self.calls.append((reference_url, candidate_url))
        if self.fail:
            raise RuntimeError("face comparison service unavailable")
        return self.confidence


@dataclass
class LoggingNotifier:
    """Notifier that writes notifications to the log and keeps them."""

    sent: list[tuple[UUID, str, str]] = field(default_factory=list)

    async def notify_admins(self, company_id: UUID, subject: str, message: str) -> None:
        self.sent.append((company_id, subject, message))
        logger.warning("Admin notification for company %s: %s - %s", company_id, subject, message)
