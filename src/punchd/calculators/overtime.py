"""Overtime allocation: split a shift into regular/overtime/double-time pay."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from punchd.calculators.types import CENTS, OvertimeBreakdown, OvertimeSettings

SIXTY = Decimal("60")


def round_to_cents(amount: Decimal) -> Decimal:
    """Round to 2 decimal places using half-up rounding."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def bucket_pay(minutes: int, hourly_rate: Decimal, multiplier: Decimal = Decimal("1")) -> Decimal:
    """Pay for ``minutes`` at ``hourly_rate`` times ``multiplier``, rounded to cents."""
    return round_to_cents(Decimal(minutes) / SIXTY * hourly_rate * multiplier)


def split_daily(duration_minutes: int, settings: OvertimeSettings) -> tuple[int, int, int]:
    """Apply the daily thresholds only. Returns (regular, overtime, double_time)."""
    if duration_minutes <= settings.daily_ot_threshold:
        return duration_minutes, 0, 0
    if duration_minutes <= settings.daily_dt_threshold:
        return settings.daily_ot_threshold, duration_minutes - settings.daily_ot_threshold, 0
    return (
        settings.daily_ot_threshold,
        settings.daily_dt_threshold - settings.daily_ot_threshold,
        duration_minutes - settings.daily_dt_threshold,
    )


def apply_weekly(
    regular: int,
    overtime: int,
    weekly_minutes_before: int,
    settings: OvertimeSettings,
) -> tuple[int, int]:
    """Move regular minutes past the weekly threshold into overtime.

    Double-time minutes are never reclassified by the weekly rule.
    """
    if weekly_minutes_before + regular <= settings.weekly_ot_threshold:
        return regular, overtime

    if weekly_minutes_before < settings.weekly_ot_threshold:
        regular_allowed = settings.weekly_ot_threshold - weekly_minutes_before
        return regular_allowed, overtime + (regular - regular_allowed)

    return 0, overtime + regular


def allocate(
    duration_minutes: int,
    hourly_rate: Decimal | None,
    settings: OvertimeSettings,
    weekly_minutes_before: int = 0,
) -> OvertimeBreakdown:
    """Split a shift into pay buckets and price each one.

    Args:
        duration_minutes: worked minutes (elapsed time minus breaks).
        hourly_rate: effective rate; None prices every bucket at zero.
        settings: company thresholds and multipliers.
        weekly_minutes_before: minutes already worked this week before the
            shift started.

    Each bucket's pay is rounded to cents independently; the total is the
    sum of the rounded buckets.
    """
    duration_minutes = max(duration_minutes, 0)
    regular, overtime, double_time = split_daily(duration_minutes, settings)
    regular, overtime = apply_weekly(regular, overtime, max(weekly_minutes_before, 0), settings)

    if hourly_rate is None:
        return OvertimeBreakdown(
            regular_minutes=regular,
            overtime_minutes=overtime,
            double_time_minutes=double_time,
        )

    rate = Decimal(hourly_rate)
    return OvertimeBreakdown(
        regular_minutes=regular,
        overtime_minutes=overtime,
        double_time_minutes=double_time,
        regular_pay=bucket_pay(regular, rate),
        overtime_pay=bucket_pay(overtime, rate, settings.ot_multiplier),
        double_time_pay=bucket_pay(double_time, rate, settings.dt_multiplier),
    )

