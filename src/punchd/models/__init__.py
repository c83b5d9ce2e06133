"""ORM models for the time-accounting engine."""

from punchd.models.audit import AuditEvent
from punchd.models.base import Base, TimestampMixin, UTCDateTime, utcnow
from punchd.models.company import Company, Job, OvertimePolicy, User, WorkerJobRate
from punchd.models.enums import (
    ApprovalStatus,
    ClockState,
    EntryType,
    PayPeriodStatus,
    PayPeriodType,
    Role,
    TimesheetStatus,
    WorkerType,
)
from punchd.models.pay_period import PayPeriod
from punchd.models.time_entry import FaceVerificationLog, TimeEntry
from punchd.models.timesheet import Timesheet

__all__ = [
    "ApprovalStatus",
    "AuditEvent",
    "Base",
    "ClockState",
    "Company",
    "EntryType",
    "FaceVerificationLog",
    "Job",
    "OvertimePolicy",
    "PayPeriod",
    "PayPeriodStatus",
    "PayPeriodType",
    "Role",
    "TimeEntry",
    "Timesheet",
    "TimesheetStatus",
    "TimestampMixin",
    "User",
    "UTCDateTime",
    "WorkerJobRate",
    "WorkerType",
    "utcnow",
]
