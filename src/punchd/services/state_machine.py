"""Status state machines with transition validation."""

from __future__ import annotations

from enum import Enum

from punchd.errors import InvalidTransitionError
from punchd.models.enums import ClockState, PayPeriodStatus, TimesheetStatus


class StateMachine:
    """Table-driven transition validation.

    Subclasses define ``VALID_TRANSITIONS`` as {from_status: [allowed_to_statuses]}.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {}

    @classmethod
    def can_transition(cls, from_status: str | Enum, to_status: str | Enum) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(_value(from_status), [])
        return _value(to_status) in allowed

    @classmethod
    def validate_transition(cls, from_status: str | Enum, to_status: str | Enum) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(_value(from_status), _value(to_status))

    @classmethod
    def get_next_statuses(cls, current_status: str | Enum) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(_value(current_status), [])


def _value(status: str | Enum) -> str:
    return status.value if isinstance(status, Enum) else status


class ClockSessionStateMachine(StateMachine):
    """Lifecycle of one worker's clock session.

    - not clocked in → clocked in (clock-in)
    - clocked in → on break (start break)
    - on break → clocked in (end break)
    - clocked in → clocked out (clock-out; terminal for the session)
    """

    VALID_TRANSITIONS = {
        ClockState.NOT_CLOCKED_IN.value: [ClockState.CLOCKED_IN.value],
        ClockState.CLOCKED_IN.value: [ClockState.ON_BREAK.value, ClockState.CLOCKED_OUT.value],
        ClockState.ON_BREAK.value: [ClockState.CLOCKED_IN.value],
        ClockState.CLOCKED_OUT.value: [],
    }


class PayPeriodStateMachine(StateMachine):
    """Pay period status transitions.

    - open → locked
    - locked → open (owner unlock)
    - locked → exported
    - exported → open (owner unlock)
    """

    VALID_TRANSITIONS = {
        PayPeriodStatus.OPEN.value: [PayPeriodStatus.LOCKED.value],
        PayPeriodStatus.LOCKED.value: [PayPeriodStatus.OPEN.value, PayPeriodStatus.EXPORTED.value],
        PayPeriodStatus.EXPORTED.value: [PayPeriodStatus.OPEN.value],
    }

    # Statuses in which covered entries are locked
    ENTRIES_LOCKED = {PayPeriodStatus.LOCKED.value, PayPeriodStatus.EXPORTED.value}

    @classmethod
    def is_unlock(cls, from_status: str | Enum, to_status: str | Enum) -> bool:
        return _value(from_status) in cls.ENTRIES_LOCKED and _value(to_status) == PayPeriodStatus.OPEN.value


class TimesheetStateMachine(StateMachine):
    """Timesheet status transitions.

    - draft → submitted
    - submitted → draft (withdraw)
    - submitted → approved | rejected (review; both terminal)
    """

    VALID_TRANSITIONS = {
        TimesheetStatus.DRAFT.value: [TimesheetStatus.SUBMITTED.value],
        TimesheetStatus.SUBMITTED.value: [
            TimesheetStatus.DRAFT.value,
            TimesheetStatus.APPROVED.value,
            TimesheetStatus.REJECTED.value,
        ],
        TimesheetStatus.APPROVED.value: [],
        TimesheetStatus.REJECTED.value: [],
    }

    # Statuses where the entry set can change
    ENTRIES_MUTABLE = {TimesheetStatus.DRAFT.value}

    @classmethod
    def can_modify_entries(cls, status: str | Enum) -> bool:
        return _value(status) in cls.ENTRIES_MUTABLE

    @classmethod
    def is_review(cls, to_status: str | Enum) -> bool:
        return _value(to_status) in (TimesheetStatus.APPROVED.value, TimesheetStatus.REJECTED.value)
