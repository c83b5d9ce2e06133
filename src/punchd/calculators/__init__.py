"""Time-accounting calculators."""

from punchd.calculators.engine import ShiftEngine, elapsed_minutes
from punchd.calculators.geofence import haversine_distance, is_within_geofence
from punchd.calculators.overtime import allocate, round_to_cents
from punchd.calculators.periods import compute_period, compute_period_for_schedule
from punchd.calculators.rate_resolver import RateResolver
from punchd.calculators.types import (
    GeofenceResult,
    OvertimeBreakdown,
    OvertimeSettings,
    PayPeriodSchedule,
    PeriodWindow,
)

__all__ = [
    "GeofenceResult",
    "OvertimeBreakdown",
    "OvertimeSettings",
    "PayPeriodSchedule",
    "PeriodWindow",
    "RateResolver",
    "ShiftEngine",
    "allocate",
    "compute_period",
    "compute_period_for_schedule",
    "elapsed_minutes",
    "haversine_distance",
    "is_within_geofence",
    "round_to_cents",
]
