"""External collaborator protocols and in-process adapters."""

from punchd.integrations.base import AuditSink, FaceComparator, Notifier, PhotoStore
from punchd.integrations.stubs import InMemoryPhotoStore, LoggingNotifier, StaticFaceComparator

__all__ = [
    "AuditSink",
    "FaceComparator",
    "InMemoryPhotoStore",
    "LoggingNotifier",
    "Notifier",
    "PhotoStore",
    "StaticFaceComparator",
]
