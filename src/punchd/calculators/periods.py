"""Pay-period window calculation.

All arithmetic is done on UTC calendar dates: the reference instant is
first converted to UTC and reduced to its date, so daylight-saving
transitions and local-clock offsets never move a boundary. Windows are
inclusive and day-granular (00:00:00.000 to 23:59:59.999 UTC).
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta, timezone

from punchd.calculators.types import PayPeriodSchedule, PeriodWindow
from punchd.errors import InvalidConfiguration
from punchd.models.enums import PayPeriodType

BIWEEKLY_DAYS = 14
CUSTOM_DAYS_RANGE = (1, 31)

# Valid start_day range per recurrence type, and the default when unset
START_DAY_RULES: dict[PayPeriodType, tuple[int, int, int]] = {
    PayPeriodType.WEEKLY: (0, 6, 1),  # 0=Sunday; defaults to Monday
    PayPeriodType.SEMIMONTHLY: (1, 15, 1),
    PayPeriodType.MONTHLY: (1, 31, 1),
}


def day_start(day: date) -> datetime:
    """00:00:00.000 UTC on ``day``."""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def day_end(day: date) -> datetime:
    """23:59:59.999 UTC on ``day`` (millisecond precision, like the stored windows)."""
    return datetime.combine(day, time(23, 59, 59, 999000), tzinfo=timezone.utc)


def window_for_days(first: date, last: date) -> PeriodWindow:
    """Inclusive window from the start of ``first`` to the end of ``last``."""
    return PeriodWindow(start=day_start(first), end=day_end(last))


def to_utc_date(reference: datetime | date) -> date:
    """Reduce a reference instant to its UTC calendar date."""
    if isinstance(reference, datetime):
        if reference.tzinfo is None:
            reference = reference.replace(tzinfo=timezone.utc)
        return reference.astimezone(timezone.utc).date()
    return reference


def sunday_week_start(reference: datetime | date) -> datetime:
    """Start of the Sunday-anchored calendar week containing ``reference``."""
    day = to_utc_date(reference)
    days_since_sunday = (day.weekday() + 1) % 7
    return day_start(day - timedelta(days=days_since_sunday))


def _parse_type(period_type: PayPeriodType | str) -> PayPeriodType:
    try:
        return PayPeriodType(period_type)
    except ValueError:
        raise InvalidConfiguration(
            f"Unknown pay period type '{period_type}'", period_type=str(period_type)
        ) from None


def _resolve_start_day(period_type: PayPeriodType, start_day: int | None) -> int:
    low, high, default = START_DAY_RULES[period_type]
    if start_day is None:
        return default
    if not low <= start_day <= high:
        raise InvalidConfiguration(
            f"{period_type.value} start day must be between {low} and {high}",
            period_type=period_type.value,
            start_day=start_day,
        )
    return start_day


def _require_anchor(period_type: PayPeriodType, anchor_date: date | None) -> date:
    if anchor_date is None:
        raise InvalidConfiguration(
            f"{period_type.value} pay periods require an anchor date",
            period_type=period_type.value,
        )
    return anchor_date


def _clamped(year: int, month: int, day: int) -> date:
    """``day`` of the month, clamped to the month's last day."""
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def _add_months(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _weekly(day: date, start_day: int) -> PeriodWindow:
    sunday_based = (day.weekday() + 1) % 7
    first = day - timedelta(days=(sunday_based - start_day) % 7)
    return window_for_days(first, first + timedelta(days=6))


def _anchored(day: date, anchor: date, length: int) -> PeriodWindow:
    index = (day - anchor).days // length
    first = anchor + timedelta(days=length * index)
    return window_for_days(first, first + timedelta(days=length - 1))


def _semimonthly(day: date, start_day: int) -> PeriodWindow:
    if start_day <= day.day <= 15:
        return window_for_days(date(day.year, day.month, start_day), date(day.year, day.month, 15))

    if day.day >= 16:
        first = date(day.year, day.month, 16)
        next_year, next_month = _add_months(day.year, day.month, 1)
    else:
        # Before this month's first half: second half of the previous month
        prev_year, prev_month = _add_months(day.year, day.month, -1)
        first = date(prev_year, prev_month, 16)
        next_year, next_month = day.year, day.month

    last = date(next_year, next_month, start_day) - timedelta(days=1)
    return window_for_days(first, last)


def _monthly(day: date, start_day: int) -> PeriodWindow:
    this_start = _clamped(day.year, day.month, start_day)
    if day >= this_start:
        first = this_start
        year, month = _add_months(day.year, day.month, 1)
    else:
        year, month = _add_months(day.year, day.month, -1)
        first = _clamped(year, month, start_day)
        year, month = day.year, day.month
    last = _clamped(year, month, start_day) - timedelta(days=1)
    return window_for_days(first, last)


def compute_period(
    period_type: PayPeriodType | str,
    start_day: int | None,
    anchor_date: date | None,
    custom_days: int | None,
    reference: datetime | date,
) -> PeriodWindow:
    """Compute the pay period covering ``reference``.

    Args:
        period_type: WEEKLY, BIWEEKLY, SEMIMONTHLY, MONTHLY or CUSTOM.
        start_day: WEEKLY: weekday (0=Sunday..6). SEMIMONTHLY: 1-15.
            MONTHLY: 1-31, clamped to short months. Ignored otherwise.
        anchor_date: first day of any period (BIWEEKLY and CUSTOM).
        custom_days: CUSTOM period length, 1-31 days.
        reference: instant (or UTC date) to cover.

    Raises:
        InvalidConfiguration: required parameters missing or out of range.
    """
    kind = _parse_type(period_type)
    day = to_utc_date(reference)

    if kind == PayPeriodType.WEEKLY:
        return _weekly(day, _resolve_start_day(kind, start_day))

    if kind == PayPeriodType.BIWEEKLY:
        return _anchored(day, _require_anchor(kind, anchor_date), BIWEEKLY_DAYS)

    if kind == PayPeriodType.SEMIMONTHLY:
        return _semimonthly(day, _resolve_start_day(kind, start_day))

    if kind == PayPeriodType.MONTHLY:
        return _monthly(day, _resolve_start_day(kind, start_day))

    low, high = CUSTOM_DAYS_RANGE
    if custom_days is None or not low <= custom_days <= high:
        raise InvalidConfiguration(
            f"CUSTOM pay periods require a length between {low} and {high} days",
            custom_days=custom_days,
        )
    return _anchored(day, _require_anchor(kind, anchor_date), custom_days)


def compute_period_for_schedule(
    schedule: PayPeriodSchedule, reference: datetime | date
) -> PeriodWindow:
    """Convenience wrapper over :func:`compute_period` for a stored schedule."""
    return compute_period(
        schedule.period_type,
        schedule.start_day,
        schedule.anchor_date,
        schedule.custom_days,
        reference,
    )
