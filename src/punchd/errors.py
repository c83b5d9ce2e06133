"""Typed failures raised by the time-accounting engine.

Every error carries a stable ``code`` and a ``details`` dict with the data
needed to explain the decision to the caller. The API layer maps the four
families (validation, state conflict, authorization, not found) to HTTP
statuses.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID


class PunchdError(Exception):
    """Base class for all engine errors."""

    code = "ERROR"

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = details
        super().__init__(message)


# ===== Validation =====


class ValidationError(PunchdError):
    """Malformed input, rejected before any state change."""

    code = "VALIDATION_ERROR"


class InvalidConfiguration(ValidationError):
    """Pay-period recurrence or overtime parameters are missing or out of range."""

    code = "INVALID_CONFIGURATION"


class InvalidPolicy(ValidationError):
    """Overtime policy override is inconsistent."""

    code = "INVALID_POLICY"


class InvalidReason(ValidationError):
    """Unlock reason is missing or too short."""

    code = "INVALID_REASON"

    def __init__(self, min_length: int):
        super().__init__(
            f"Please provide a reason for unlocking (minimum {min_length} characters)",
            min_length=min_length,
        )


class JobRequired(ValidationError):
    """JOB_TIME entries need a job."""

    code = "JOB_REQUIRED"

    def __init__(self) -> None:
        super().__init__("Job ID is required for job time entries")


class ExcessiveDuration(ValidationError):
    """A shift may not exceed the configured maximum length."""

    code = "EXCESSIVE_DURATION"

    def __init__(self, elapsed_minutes: int, max_minutes: int):
        super().__init__(
            f"Shift of {elapsed_minutes} minutes exceeds the {max_minutes} minute maximum",
            elapsed_minutes=elapsed_minutes,
            max_minutes=max_minutes,
        )


class InvalidPeriodRange(ValidationError):
    """Pay period or timesheet date range is inverted or empty."""

    code = "INVALID_PERIOD_RANGE"


class OverlappingPeriod(ValidationError):
    """A manual pay period overlaps an existing one."""

    code = "OVERLAPPING_PERIOD"

    def __init__(self, existing_period_id: UUID):
        super().__init__(
            "Pay period overlaps with existing period",
            existing_period_id=str(existing_period_id),
        )


# ===== State conflicts =====


class StateConflictError(PunchdError):
    """The target is not in a state that allows the operation."""

    code = "STATE_CONFLICT"


class AlreadyClockedIn(StateConflictError):
    code = "ALREADY_CLOCKED_IN"

    def __init__(self) -> None:
        super().__init__("You are already clocked in. Please clock out first.")


class NotClockedIn(StateConflictError):
    code = "NOT_CLOCKED_IN"

    def __init__(self) -> None:
        super().__init__("No active clock-in found. Please clock in first.")


class AlreadyOnBreak(StateConflictError):
    code = "ALREADY_ON_BREAK"

    def __init__(self) -> None:
        super().__init__("You are already on a break.")


class NotOnBreak(StateConflictError):
    code = "NOT_ON_BREAK"

    def __init__(self) -> None:
        super().__init__("You are not currently on a break.")


class OnBreak(StateConflictError):
    code = "ON_BREAK"

    def __init__(self) -> None:
        super().__init__(
            "You are currently on break. Please end your break before clocking out."
        )


class EntryLocked(StateConflictError):
    code = "ENTRY_LOCKED"

    def __init__(self, entry_id: UUID):
        super().__init__(
            f"Time entry {entry_id} is locked by a closed pay period",
            entry_id=str(entry_id),
        )


class EntryNotPending(StateConflictError):
    code = "ENTRY_NOT_PENDING"

    def __init__(self, entry_id: UUID, status: str):
        super().__init__(
            f"Entry is already {status.lower()}", entry_id=str(entry_id), status=status
        )


class EntryStillActive(StateConflictError):
    code = "ENTRY_STILL_ACTIVE"

    def __init__(self, entry_id: UUID):
        super().__init__(
            "Cannot approve an entry that is still active", entry_id=str(entry_id)
        )


class NoEligibleEntries(StateConflictError):
    code = "NO_ELIGIBLE_ENTRIES"

    def __init__(self) -> None:
        super().__init__("No completed, unsubmitted time entries found")


class PartialSelection(StateConflictError):
    code = "PARTIAL_SELECTION"

    def __init__(self, invalid_ids: list[UUID]):
        super().__init__(
            "Some entries are invalid, already in a timesheet, locked, or archived",
            invalid_ids=sorted(str(i) for i in invalid_ids),
        )


class EmptyTimesheet(StateConflictError):
    code = "EMPTY_TIMESHEET"

    def __init__(self) -> None:
        super().__init__("Cannot submit an empty timesheet")


class InvalidTransitionError(StateConflictError):
    """Raised when an invalid status transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None, **details: Any):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, from_status=from_status, to_status=to_status, **details)


class AlreadyLocked(InvalidTransitionError):
    code = "ALREADY_LOCKED"

    def __init__(self, from_status: str):
        super().__init__(from_status, "LOCKED", "Pay period is already locked")


class NotLocked(InvalidTransitionError):
    code = "NOT_LOCKED"

    def __init__(self, from_status: str, to_status: str):
        super().__init__(from_status, to_status, "Pay period is not locked")


class PeriodNotOpen(InvalidTransitionError):
    code = "PERIOD_NOT_OPEN"

    def __init__(self, from_status: str, to_status: str):
        super().__init__(from_status, to_status, "Pay period is not open")


class PendingApprovals(InvalidTransitionError):
    code = "PENDING_APPROVALS"

    def __init__(self, count: int):
        self.count = count
        super().__init__(
            "OPEN",
            "LOCKED",
            f"{count} time entries are still pending approval",
            pending_count=count,
        )


class NotDraft(InvalidTransitionError):
    code = "NOT_DRAFT"

    def __init__(self, from_status: str, to_status: str):
        super().__init__(from_status, to_status, "Only draft timesheets allow this")


class NotEditable(InvalidTransitionError):
    code = "NOT_EDITABLE"

    def __init__(self, from_status: str):
        super().__init__(from_status, from_status, "Only draft timesheets can be edited")


class NotSubmitted(InvalidTransitionError):
    code = "NOT_SUBMITTED"

    def __init__(self, from_status: str, to_status: str):
        super().__init__(from_status, to_status, "Only submitted timesheets allow this")


# ===== Authorization =====


class AuthorizationError(PunchdError):
    """The actor may not perform the operation."""

    code = "FORBIDDEN"


class Forbidden(AuthorizationError):
    code = "FORBIDDEN"


class GeofenceViolation(AuthorizationError):
    code = "GEOFENCE_VIOLATION"

    def __init__(self, distance_meters: int, radius_meters: int):
        self.distance_meters = distance_meters
        self.radius_meters = radius_meters
        super().__init__(
            f"Clock-in denied: You are {distance_meters}m from the job site. "
            f"Must be within {radius_meters}m.",
            distance_meters=distance_meters,
            radius_meters=radius_meters,
        )


class IdentityMismatch(AuthorizationError):
    code = "IDENTITY_MISMATCH"

    def __init__(self, confidence: float, threshold: float):
        self.confidence = confidence
        self.threshold = threshold
        super().__init__(
            f"Face verification failed. Confidence: {confidence:.1f}%. "
            "Please try again or contact your supervisor.",
            confidence=confidence,
            threshold=threshold,
        )


# ===== Not found =====


class NotFoundError(PunchdError):
    """Dangling id, or a record outside the actor's company."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: UUID | str | None = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity} not found",
            entity=entity,
            entity_id=str(entity_id) if entity_id is not None else None,
        )
