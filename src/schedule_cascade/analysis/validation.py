"""Consistency checks over a schedule snapshot."""

import logging
from dataclasses import dataclass

from schedule_cascade.cascade.ordering import chronological_key
from schedule_cascade.core.models import (
    Schedule,
    derive_departure_time,
    first_departure_minutes,
    last_active_departure_minutes,
)
from schedule_cascade.core.time_arithmetic import time_to_minutes

logger = logging.getLogger(__name__)

DEPARTURE_CONSISTENCY = "departure_consistency"
BLOCK_CHAIN = "block_chain"
TAIL_RECOVERY = "tail_recovery"
NUMBERING = "numbering"
TRUNCATION_BACKUP = "truncation_backup"
START_TIME_CACHE = "start_time_cache"


@dataclass(frozen=True)
class InvariantViolation:
    kind: str
    trip_number: int | None
    block_number: int | None
    message: str


def _check_departures(schedule: Schedule) -> list[InvariantViolation]:
    violations = []
    time_points = schedule.time_points
    n_time_points = len(time_points)
    for trip in schedule.trips:
        for index, tp in enumerate(time_points):
            if index == 0 or not trip.is_active(index, n_time_points):
                continue
            arrival = time_to_minutes(trip.arrival_times.get(tp.id))
            departure = time_to_minutes(trip.departure_times.get(tp.id))
            if arrival is None or departure is None:
                continue
            if departure != arrival + trip.recovery_at(tp.id):
                violations.append(
                    InvariantViolation(
                        DEPARTURE_CONSISTENCY,
                        trip.trip_number,
                        trip.block_number,
                        f"{tp.id}: departure {trip.departure_times[tp.id]} != arrival "
                        f"{trip.arrival_times[tp.id]} + {trip.recovery_at(tp.id)} min",
                    )
                )

        cached = derive_departure_time(trip, time_points)
        if cached and time_to_minutes(cached) != time_to_minutes(trip.departure_time):
            violations.append(
                InvariantViolation(
                    START_TIME_CACHE,
                    trip.trip_number,
                    trip.block_number,
                    f"departure_time {trip.departure_time} does not match first stop time {cached}",
                )
            )
    return violations


def _check_blocks(schedule: Schedule, min_block_trips: int) -> list[InvariantViolation]:
    violations = []
    time_points = schedule.time_points
    for block_number in schedule.block_numbers():
        block = schedule.block_trips(block_number)
        for previous, trip in zip(block, block[1:]):
            previous_end = last_active_departure_minutes(previous, time_points)
            start = first_departure_minutes(trip, time_points)
            if previous_end is None or start is None or previous_end == start:
                continue
            gap = start - previous_end
            violations.append(
                InvariantViolation(
                    BLOCK_CHAIN,
                    trip.trip_number,
                    block_number,
                    f"starts {abs(gap)} min {'after' if gap > 0 else 'before'} trip "
                    f"{previous.trip_number} ends",
                )
            )

        tail = block[-1]
        if len(block) >= min_block_trips and (
            tail.recovery_minutes or any(tail.recovery_times.values())
        ):
            violations.append(
                InvariantViolation(TAIL_RECOVERY, tail.trip_number, block_number, "last trip of block has recovery")
            )
    return violations


def _check_numbering(schedule: Schedule) -> list[InvariantViolation]:
    numbers = [trip.trip_number for trip in schedule.trips]
    expected_order = sorted(schedule.trips, key=lambda trip: chronological_key(trip, schedule.time_points))

    violations = []
    if numbers != list(range(1, len(numbers) + 1)):
        violations.append(InvariantViolation(NUMBERING, None, None, f"trip numbers are not 1..N: {numbers}"))
    elif [trip.trip_number for trip in expected_order] != numbers:
        violations.append(InvariantViolation(NUMBERING, None, None, "trips are not numbered chronologically"))
    return violations


def _check_backups(schedule: Schedule) -> list[InvariantViolation]:
    violations = []
    for trip in schedule.trips:
        backups = (trip.original_arrival_times, trip.original_departure_times, trip.original_recovery_times)
        has_backup = any(backup is not None for backup in backups)
        if trip.is_truncated and not all(backup is not None for backup in backups):
            violations.append(
                InvariantViolation(TRUNCATION_BACKUP, trip.trip_number, trip.block_number, "truncated without backups")
            )
        elif not trip.is_truncated and has_backup:
            violations.append(
                InvariantViolation(
                    TRUNCATION_BACKUP, trip.trip_number, trip.block_number, "backups kept on a full trip"
                )
            )
    return violations


def validate_schedule(schedule: Schedule, config=None) -> list[InvariantViolation]:
    """
    Check a snapshot against the schedule invariants.

    Covers departure = arrival + recovery on active stops, gap-free block
    chains, zero recovery on block tails, dense chronological numbering and
    truncation backups. An empty list means the snapshot is consistent.
    """
    min_block_trips = config.tail.min_block_trips if config is not None else 2

    violations = (
        _check_departures(schedule)
        + _check_blocks(schedule, min_block_trips)
        + _check_numbering(schedule)
        + _check_backups(schedule)
    )
    if violations:
        logger.debug(f"Found {len(violations)} invariant violation(s)")
    return violations
