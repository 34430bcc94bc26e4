"""
Chronological ordering, renumbering and the closing pass.

Every mutating operation ends with ``finalize_schedule``: re-derive each trip's
cached ``departure_time``, sort trips chronologically (ties by block number),
renumber them 1..N and run the tail recovery enforcer. Trips that need no
change keep their identity, so finalizing an already-final schedule returns
the very same object.
"""

import logging

from schedule_cascade.cascade.tail import enforce_tail_recovery_rules
from schedule_cascade.core.models import Schedule, TimePoint, Trip, derive_departure_time, first_departure_minutes

logger = logging.getLogger(__name__)

_UNKNOWN_START = 10**9


def chronological_key(trip: Trip, time_points: tuple[TimePoint, ...]) -> tuple[int, int, int]:
    """Sort key: first departure, then block number, then previous trip number."""
    minutes = first_departure_minutes(trip, time_points)
    return (minutes if minutes is not None else _UNKNOWN_START, trip.block_number, trip.trip_number)


def sync_departure_time(trip: Trip, time_points: tuple[TimePoint, ...]) -> Trip:
    """Return the trip with ``departure_time`` matching its earliest stop time."""
    derived = derive_departure_time(trip, time_points)
    if not derived or derived == trip.departure_time:
        return trip
    updated = trip.copy()
    updated.departure_time = derived
    return updated


def sort_trips_chronologically(trips: list[Trip], time_points: tuple[TimePoint, ...]) -> list[Trip]:
    return sorted(trips, key=lambda trip: chronological_key(trip, time_points))


def renumber_trips(trips: list[Trip]) -> list[Trip]:
    """Assign dense trip numbers 1..N in list order, copying only changed trips."""
    renumbered = []
    for number, trip in enumerate(trips, start=1):
        if trip.trip_number != number:
            trip = trip.copy()
            trip.trip_number = number
        renumbered.append(trip)
    return renumbered


def finalize_schedule(schedule: Schedule, config=None) -> Schedule:
    """
    Closing pass run after every mutating operation.

    Args:
        schedule: Snapshot produced by an operation
        config: Optional EngineConfig (tail rule scope)

    Returns:
        Snapshot with synced start times, chronological order, dense trip
        numbers and the tail recovery rule applied.
    """
    time_points = schedule.time_points
    synced = [sync_departure_time(trip, time_points) for trip in schedule.trips]
    ordered = renumber_trips(sort_trips_chronologically(synced, time_points))

    unchanged = len(ordered) == len(schedule.trips) and all(
        new is old for new, old in zip(ordered, schedule.trips)
    )
    ordered_schedule = schedule if unchanged else schedule.with_trips(ordered)

    return enforce_tail_recovery_rules(ordered_schedule, config)
