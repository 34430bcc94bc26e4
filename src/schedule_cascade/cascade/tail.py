"""
Tail recovery enforcement.

A block's chronologically last trip ends the vehicle's service, so it carries
no recovery time. Its real recovery values are not thrown away: they are
stashed in ``hidden_tail_recovery_times`` and come back as soon as the trip
stops being last (for example when a trip is appended after it).

The enforcer is idempotent. Equality checks use default-zero semantics
(a missing key and an explicit ``0`` are the same), and trips that already
satisfy the rule are returned as the same objects.
"""

import logging

from schedule_cascade.core.models import (
    Schedule,
    TimePoint,
    Trip,
    first_departure_minutes,
    sum_active_recovery,
)
from schedule_cascade.core.time_arithmetic import add_minutes

logger = logging.getLogger(__name__)


def _min_block_trips(config) -> int:
    if config is None:
        return 2
    return config.tail.min_block_trips


def _nonzero(values: dict[str, int] | None) -> dict[str, int]:
    return {key: int(value) for key, value in (values or {}).items() if value}


def stash_tail_recovery(trip: Trip, time_points: tuple[TimePoint, ...]) -> Trip:
    """
    Zero a tail trip's recovery and keep the non-zero values in the stash.

    Active departures at the zeroed timepoints (except the first) are reset to
    their arrivals so that ``departure = arrival + recovery`` keeps holding.
    """
    live = _nonzero(trip.recovery_times)
    if not live and trip.recovery_minutes == 0:
        return trip

    updated = trip.copy()
    stash = _nonzero(trip.hidden_tail_recovery_times)
    stash.update(live)
    updated.hidden_tail_recovery_times = stash or None

    n_time_points = len(time_points)
    for index, tp in enumerate(time_points):
        if tp.id not in live:
            continue
        updated.recovery_times[tp.id] = 0
        arrival = updated.arrival_times.get(tp.id)
        if index > 0 and arrival and updated.is_active(index, n_time_points):
            updated.departure_times[tp.id] = arrival

    # keys that are not timepoints of this schedule
    for key in live:
        updated.recovery_times[key] = 0

    updated.recovery_minutes = 0
    logger.debug(f"Stashed tail recovery of trip {trip.trip_number} (block {trip.block_number}): {live}")
    return updated


def restore_tail_recovery(trip: Trip, time_points: tuple[TimePoint, ...]) -> Trip:
    """Put stashed recovery back on a trip that is no longer its block's tail."""
    if trip.hidden_tail_recovery_times is None:
        return trip

    updated = trip.copy()
    n_time_points = len(time_points)
    for index, tp in enumerate(time_points):
        if tp.id not in trip.hidden_tail_recovery_times:
            continue
        minutes = int(trip.hidden_tail_recovery_times[tp.id])
        updated.recovery_times[tp.id] = minutes
        arrival = updated.arrival_times.get(tp.id)
        if index > 0 and arrival and updated.is_active(index, n_time_points):
            updated.departure_times[tp.id] = add_minutes(arrival, minutes)

    updated.hidden_tail_recovery_times = None
    updated.recovery_minutes = sum_active_recovery(updated, time_points)
    logger.debug(f"Restored stashed recovery on trip {trip.trip_number} (block {trip.block_number})")
    return updated


def enforce_tail_recovery_rules(schedule: Schedule, config=None) -> Schedule:
    """
    Apply the tail recovery rule to every block.

    Args:
        schedule: Snapshot to enforce
        config: Optional EngineConfig; ``config.tail.min_block_trips`` limits the
            rule to blocks of at least that many trips

    Returns:
        The same ``Schedule`` object when nothing changes, otherwise a new one.
    """
    time_points = schedule.time_points
    min_trips = _min_block_trips(config)

    positions_by_block: dict[int, list[int]] = {}
    for position, trip in enumerate(schedule.trips):
        positions_by_block.setdefault(trip.block_number, []).append(position)

    updated_trips = list(schedule.trips)
    changed = 0

    for block_number, positions in positions_by_block.items():
        ordered = sorted(
            positions,
            key=lambda p: (_start_or_max(schedule.trips[p], time_points), schedule.trips[p].trip_number),
        )
        enforce_block = len(ordered) >= min_trips
        tail_position = ordered[-1]

        for position in ordered:
            trip = schedule.trips[position]
            if enforce_block and position == tail_position:
                updated = stash_tail_recovery(trip, time_points)
            else:
                updated = restore_tail_recovery(trip, time_points)

            if updated is not trip:
                updated_trips[position] = updated
                changed += 1

    if not changed:
        return schedule

    logger.debug(f"Tail recovery rule updated {changed} trip(s)")
    return schedule.with_trips(updated_trips)


def _start_or_max(trip: Trip, time_points: tuple[TimePoint, ...]) -> int:
    minutes = first_departure_minutes(trip, time_points)
    return minutes if minutes is not None else 10**9
