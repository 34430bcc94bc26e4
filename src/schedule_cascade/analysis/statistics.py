"""
Schedule statistics.

Trip time runs from the first departure to the departure at the last active
timepoint; travel time is trip time minus recovery; the recovery percentage is
recovery over travel time.
"""

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from schedule_cascade.core.models import (
    Schedule,
    Trip,
    TimePoint,
    first_departure_minutes,
    last_active_departure_minutes,
    sum_active_recovery,
)

logger = logging.getLogger(__name__)


def trip_time(trip: Trip, time_points: tuple[TimePoint, ...]) -> int:
    """Minutes from first departure to last active departure (0 if unknown)."""
    start = first_departure_minutes(trip, time_points)
    end = last_active_departure_minutes(trip, time_points)
    if start is None or end is None:
        return 0
    return end - start


def trip_recovery_time(trip: Trip, time_points: tuple[TimePoint, ...]) -> int:
    return sum_active_recovery(trip, time_points)


def travel_time(trip_minutes: float, recovery_minutes: float) -> float:
    return max(0, trip_minutes - recovery_minutes)


def recovery_percentage(recovery_minutes: float, travel_minutes: float) -> float:
    if travel_minutes == 0:
        return 0.0
    return recovery_minutes / travel_minutes * 100


def format_minutes(minutes: int) -> str:
    """Duration as ``H:MM``."""
    hours, remaining = divmod(int(minutes), 60)
    return f"{hours}:{remaining:02d}"


@dataclass
class ScheduleSummary:
    """Totals over all trips with a positive trip time."""

    trip_count: int
    block_count: int
    total_trip_minutes: int
    total_travel_minutes: int
    total_recovery_minutes: int
    average_recovery_percent: float

    def to_dict(self) -> dict:
        return {
            "tripCount": self.trip_count,
            "blockCount": self.block_count,
            "totalTripTime": format_minutes(self.total_trip_minutes),
            "totalTravelTime": format_minutes(self.total_travel_minutes),
            "totalRecoveryTime": format_minutes(self.total_recovery_minutes),
            "averageRecoveryPercent": f"{self.average_recovery_percent:.1f}",
        }


def trips_to_frame(schedule: Schedule) -> pd.DataFrame:
    """One row per trip with its timing figures."""
    time_points = schedule.time_points
    rows = []
    for trip in schedule.trips:
        minutes = trip_time(trip, time_points)
        recovery = trip_recovery_time(trip, time_points)
        travel = travel_time(minutes, recovery)
        rows.append(
            {
                "trip_number": trip.trip_number,
                "block_number": trip.block_number,
                "departure_time": trip.departure_time,
                "service_band": trip.service_band,
                "trip_minutes": minutes,
                "recovery_minutes": recovery,
                "travel_minutes": travel,
                "recovery_percent": recovery_percentage(recovery, travel),
                "truncated": trip.is_truncated,
            }
        )

    columns = [
        "trip_number",
        "block_number",
        "departure_time",
        "service_band",
        "trip_minutes",
        "recovery_minutes",
        "travel_minutes",
        "recovery_percent",
        "truncated",
    ]
    return pd.DataFrame(rows, columns=columns)


def schedule_summary(schedule: Schedule) -> ScheduleSummary:
    frame = trips_to_frame(schedule)
    valid = frame[frame["trip_minutes"] > 0]

    total_recovery = int(valid["recovery_minutes"].sum())
    total_travel = int(valid["travel_minutes"].sum())
    return ScheduleSummary(
        trip_count=len(valid),
        block_count=len(schedule.block_numbers()),
        total_trip_minutes=int(valid["trip_minutes"].sum()),
        total_travel_minutes=total_travel,
        total_recovery_minutes=total_recovery,
        average_recovery_percent=recovery_percentage(total_recovery, total_travel),
    )


def block_summary(schedule: Schedule) -> pd.DataFrame:
    """
    Per-block service span and utilisation.

    Columns: ``block_number``, ``trips``, ``first_departure``, ``last_departure``,
    ``service_minutes`` and ``recovery_minutes``.
    """
    time_points = schedule.time_points
    rows = []
    for block_number in schedule.block_numbers():
        block = schedule.block_trips(block_number)
        starts = [first_departure_minutes(trip, time_points) for trip in block]
        ends = [last_active_departure_minutes(trip, time_points) for trip in block]
        starts = [m for m in starts if m is not None]
        ends = [m for m in ends if m is not None]
        first = min(starts) if starts else np.nan
        last = max(ends) if ends else np.nan
        rows.append(
            {
                "block_number": block_number,
                "trips": len(block),
                "first_departure": block[0].departure_time,
                "last_departure": block[-1].departure_time,
                "service_minutes": last - first,
                "recovery_minutes": sum(trip_recovery_time(trip, time_points) for trip in block),
            }
        )

    columns = ["block_number", "trips", "first_departure", "last_departure", "service_minutes", "recovery_minutes"]
    return pd.DataFrame(rows, columns=columns)
