"""Time-accounting services."""

from punchd.services.actor import Actor
from punchd.services.approval_service import ApprovalService
from punchd.services.audit_service import AuditService, DatabaseAuditSink
from punchd.services.clock_service import ClockService, ClockStatus
from punchd.services.export_service import ExportService
from punchd.services.locking_service import LockingService
from punchd.services.pay_period_service import PayPeriodService
from punchd.services.settings_service import SettingsService
from punchd.services.state_machine import (
    ClockSessionStateMachine,
    PayPeriodStateMachine,
    TimesheetStateMachine,
)
from punchd.services.timesheet_service import TimesheetService

__all__ = [
    "Actor",
    "ApprovalService",
    "AuditService",
    "ClockService",
    "ClockSessionStateMachine",
    "ClockStatus",
    "DatabaseAuditSink",
    "ExportService",
    "LockingService",
    "PayPeriodService",
    "PayPeriodStateMachine",
    "SettingsService",
    "TimesheetService",
    "TimesheetStateMachine",
]
