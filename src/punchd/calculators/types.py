"""Type definitions for the time-accounting calculators."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

ZERO = Decimal("0")
CENTS = Decimal("0.01")


@dataclass(frozen=True)
class OvertimeSettings:
    """Resolved overtime thresholds (minutes) and pay multipliers."""

    daily_ot_threshold: int = 480
    daily_dt_threshold: int = 720
    weekly_ot_threshold: int = 2400
    ot_multiplier: Decimal = Decimal("1.5")
    dt_multiplier: Decimal = Decimal("2.0")


@dataclass(frozen=True)
class OvertimeBreakdown:
    """A shift split into pay buckets."""

    regular_minutes: int
    overtime_minutes: int
    double_time_minutes: int
    regular_pay: Decimal = ZERO
    overtime_pay: Decimal = ZERO
    double_time_pay: Decimal = ZERO

    @property
    def total_minutes(self) -> int:
        return self.regular_minutes + self.overtime_minutes + self.double_time_minutes

    @property
    def total_pay(self) -> Decimal:
        return self.regular_pay + self.overtime_pay + self.double_time_pay


@dataclass(frozen=True)
class GeofenceResult:
    """Outcome of a geofence check."""

    is_within: bool
    distance_meters: float

    @property
    def rounded_distance(self) -> int:
        return round(self.distance_meters)


@dataclass(frozen=True)
class PeriodWindow:
    """Inclusive UTC window [start, end] at day granularity."""

    start: datetime
    end: datetime

    @property
    def start_day(self) -> date:
        return self.start.date()

    @property
    def end_day(self) -> date:
        return self.end.date()

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.end


@dataclass(frozen=True)
class PayPeriodSchedule:
    """A company's recurring pay-period rule."""

    period_type: str
    start_day: int | None = None
    anchor_date: date | None = None
    custom_days: int | None = None
