"""Enumerations shared by models, calculators and services."""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Company membership roles."""

    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    WORKER = "WORKER"


class WorkerType(str, Enum):
    """How a worker is engaged (drives pay and sign-off workflows)."""

    HOURLY = "HOURLY"
    SALARIED = "SALARIED"
    CONTRACTOR = "CONTRACTOR"
    VOLUNTEER = "VOLUNTEER"


class EntryType(str, Enum):
    """Kind of time being tracked."""

    JOB_TIME = "JOB_TIME"
    TRAVEL_TIME = "TRAVEL_TIME"


class ApprovalStatus(str, Enum):
    """Time entry approval status values."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class PayPeriodType(str, Enum):
    """Pay period recurrence rules."""

    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    SEMIMONTHLY = "SEMIMONTHLY"
    MONTHLY = "MONTHLY"
    CUSTOM = "CUSTOM"


class PayPeriodStatus(str, Enum):
    """Pay period status values."""

    OPEN = "OPEN"
    LOCKED = "LOCKED"
    EXPORTED = "EXPORTED"


class TimesheetStatus(str, Enum):
    """Timesheet status values."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ClockState(str, Enum):
    """Derived state of a worker's clock session."""

    NOT_CLOCKED_IN = "NOT_CLOCKED_IN"
    CLOCKED_IN = "CLOCKED_IN"
    ON_BREAK = "ON_BREAK"
    CLOCKED_OUT = "CLOCKED_OUT"


def check_in(column: str, enum_cls: type[Enum]) -> str:
    """Build a CHECK constraint expression for an enum-valued column."""
    values = ", ".join(f"'{member.value}'" for member in enum_cls)
    return f"{column} IN ({values})"
