"""Core data model and time arithmetic."""

from .models import (
    BAND_ORDER,
    DEFAULT_BAND_COLORS,
    Schedule,
    ServiceBand,
    TimePoint,
    TravelTimeRecord,
    Trip,
)
from .time_arithmetic import add_minutes, minutes_to_time, time_to_minutes

__all__ = [
    "BAND_ORDER",
    "DEFAULT_BAND_COLORS",
    "Schedule",
    "ServiceBand",
    "TimePoint",
    "TravelTimeRecord",
    "Trip",
    "add_minutes",
    "minutes_to_time",
    "time_to_minutes",
]
