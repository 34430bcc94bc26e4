"""
Vehicle block assignment.

A block is the chain of trips one vehicle runs, so no two trips of a block may
overlap in service. Imported data often carries no usable block numbers (every
trip in its own block, or plain 1..N row numbers); in that case the trips are
partitioned again with a greedy interval-partitioning pass, which uses the
minimum number of vehicles for the given trip windows.
"""

import logging
from dataclasses import dataclass

from schedule_cascade.cascade.ordering import finalize_schedule
from schedule_cascade.core.models import Schedule, TimePoint, Trip
from schedule_cascade.core.time_arithmetic import time_to_minutes, unwrap_overnight

logger = logging.getLogger(__name__)

LEGACY_BAND = "Legacy Import"


@dataclass
class _Vehicle:
    block: int
    available_at: int


def compute_trip_window(trip: Trip, time_points: tuple[TimePoint, ...]) -> tuple[int, int] | None:
    """
    Service window ``(start, end)`` in minutes over the trip's active timepoints.

    Times are read in stop order (departure then arrival at the first stop,
    arrival then departure afterwards) and unwrapped across midnight.

    Returns:
        The window, or ``None`` when the trip has no parseable time at all.
    """
    if not time_points:
        return None

    n_time_points = len(time_points)
    raw_values = [trip.departure_time]
    for index, tp in enumerate(time_points):
        if not trip.is_active(index, n_time_points):
            break
        if index == 0:
            raw_values.extend([trip.departure_times.get(tp.id), trip.arrival_times.get(tp.id)])
        else:
            raw_values.extend([trip.arrival_times.get(tp.id), trip.departure_times.get(tp.id)])

    minutes = [m for value in raw_values if value and (m := time_to_minutes(value)) is not None]
    if not minutes:
        return None

    unwrapped = unwrap_overnight(minutes)
    start, end = min(unwrapped), max(unwrapped)
    return start, max(start, end)


def _has_overlap(trips: list[Trip], time_points: tuple[TimePoint, ...]) -> bool:
    windows_by_block: dict[int, list[tuple[int, int]]] = {}
    for trip in trips:
        window = compute_trip_window(trip, time_points)
        if window is not None:
            windows_by_block.setdefault(trip.block_number, []).append(window)

    for block_number, windows in windows_by_block.items():
        windows.sort()
        for (_, previous_end), (start, _) in zip(windows, windows[1:]):
            if start < previous_end:
                logger.debug(f"Block {block_number} has overlapping trips ({start} < {previous_end})")
                return True
    return False


def needs_block_recompute(trips: list[Trip], time_points: tuple[TimePoint, ...] = ()) -> bool:
    """
    Decide whether block numbers look unusable.

    True when a block number is missing or non-positive, when the numbering is
    the one-trip-per-block pattern typical of raw imports (``1..N`` in list
    order, or all numbers unique), or when two trips of one block overlap.
    """
    if not trips:
        return False

    block_numbers = [trip.block_number for trip in trips]
    if any(not isinstance(n, int) or isinstance(n, bool) or n <= 0 for n in block_numbers):
        return True

    sequential = all(n == index + 1 for index, n in enumerate(block_numbers))
    all_unique = len(set(block_numbers)) == len(trips) and len(trips) > 1
    if sequential or all_unique:
        return True

    return _has_overlap(trips, time_points)


def assign_blocks(windows: list[tuple[int, int] | None], reserved: set[int] | None = None) -> list[int | None]:
    """
    Greedy interval partitioning over service windows.

    Windows are processed by start (ties in input order). Each one goes to the
    open block that became available earliest, provided it is free by the
    window start, otherwise a new block is opened. ``None`` windows are not
    assigned, and block numbers in ``reserved`` are never handed out.
    """
    reserved = reserved or set()
    order = sorted(
        (index for index, window in enumerate(windows) if window is not None),
        key=lambda index: (windows[index][0], index),
    )

    vehicles: list[_Vehicle] = []
    assigned: list[int | None] = [None] * len(windows)
    next_block = 1

    for index in order:
        start, end = windows[index]
        selected = None
        for vehicle in vehicles:
            if vehicle.available_at <= start and (selected is None or vehicle.available_at < selected.available_at):
                selected = vehicle

        if selected is None:
            while next_block in reserved:
                next_block += 1
            selected = _Vehicle(block=next_block, available_at=end)
            vehicles.append(selected)
            next_block += 1
        else:
            selected.available_at = max(end, start)

        assigned[index] = selected.block

    return assigned


def compute_blocks_for_trips(schedule: Schedule) -> Schedule:
    """
    Re-partition every trip into non-overlapping blocks.

    Trips whose window cannot be computed keep their current block number (with
    a warning) and that number is left out of the greedy pass.
    """
    time_points = schedule.time_points
    windows = [compute_trip_window(trip, time_points) for trip in schedule.trips]

    reserved = set()
    for trip, window in zip(schedule.trips, windows):
        if window is None:
            logger.warning(
                f"⚠️ Trip {trip.trip_number} has no usable times, keeping block {trip.block_number}"
            )
            reserved.add(trip.block_number)

    assigned = assign_blocks(windows, reserved)

    trips = []
    for trip, block_number in zip(schedule.trips, assigned):
        if block_number is not None and block_number != trip.block_number:
            trip = trip.copy()
            trip.block_number = block_number
        trips.append(trip)

    n_blocks = len({block for block in assigned if block is not None})
    logger.info(f"🚌 Assigned {len(schedule.trips)} trips to {n_blocks} blocks")
    return schedule.with_trips(trips)


def reassign_blocks_if_needed(schedule: Schedule, config=None) -> Schedule:
    """
    Run block assignment when the current numbers look unusable.

    The closing pass (chronological sort, renumbering, tail recovery rule) runs
    either way, so the result is always a finalized snapshot.
    """
    if needs_block_recompute(schedule.trips, schedule.time_points):
        schedule = compute_blocks_for_trips(schedule)
    else:
        logger.debug("Block numbers look valid, skipping reassignment")
    return finalize_schedule(schedule, config)


def trips_from_time_matrix(matrix: list[list[str]], time_points: tuple[TimePoint, ...]) -> list[Trip]:
    """
    Build block-assigned trips from a plain matrix of stop times.

    Each row is one trip with a time (or blank) per timepoint, as produced by
    legacy summary tables. Arrival and departure are the same value, recovery
    is zero and the band is ``"Legacy Import"``. Blocks come from the greedy
    pass; rows without any parseable time are skipped with a warning.
    """
    trips = []
    for row in matrix:
        arrival_times = {}
        for tp, value in zip(time_points, row):
            if isinstance(value, str) and value.strip():
                arrival_times[tp.id] = value.strip()
        if not arrival_times:
            logger.warning(f"⚠️ Skipping matrix row without times: {row}")
            continue

        first_value = row[0].strip() if row and isinstance(row[0], str) else ""
        trips.append(
            Trip(
                trip_number=len(trips) + 1,
                block_number=0,
                departure_time=first_value or next(iter(arrival_times.values())),
                service_band=LEGACY_BAND,
                arrival_times=arrival_times,
                departure_times=dict(arrival_times),
                recovery_times={},
            )
        )

    blocks = assign_blocks([compute_trip_window(trip, time_points) for trip in trips])
    for trip, block_number in zip(trips, blocks):
        trip.block_number = block_number if block_number is not None else 0
    return trips
