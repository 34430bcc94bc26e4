"""Schedule statistics and consistency checks."""

from .statistics import (
    ScheduleSummary,
    block_summary,
    recovery_percentage,
    schedule_summary,
    travel_time,
    trip_recovery_time,
    trip_time,
    trips_to_frame,
)
from .validation import InvariantViolation, validate_schedule

__all__ = [
    "InvariantViolation",
    "ScheduleSummary",
    "block_summary",
    "recovery_percentage",
    "schedule_summary",
    "travel_time",
    "trip_recovery_time",
    "trip_time",
    "trips_to_frame",
    "validate_schedule",
]
