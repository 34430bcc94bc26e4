"""
Trip lifecycle: add, end (truncate), restore and delete.

Every operation returns a new finalized snapshot (chronological order, trip
numbers 1..N, tail recovery rule applied). Unknown trip numbers are no-ops;
parameters that describe a trip which cannot exist raise ``TripLifecycleError``.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from schedule_cascade.bands.classifier import classify_service_band
from schedule_cascade.cascade.ordering import finalize_schedule
from schedule_cascade.cascade.tail import restore_tail_recovery
from schedule_cascade.config.config_manager import EngineConfig
from schedule_cascade.core.models import (
    Schedule,
    Trip,
    first_departure_minutes,
    last_active_departure_minutes,
    sum_active_recovery,
)
from schedule_cascade.core.time_arithmetic import minutes_to_time, round_half_up, time_to_minutes
from schedule_cascade.exceptions import ScheduleRebuildError, TripLifecycleError
from schedule_cascade.templates.applier import fit_template

logger = logging.getLogger(__name__)


class TripInsertMode(str, Enum):
    """Where a new trip goes relative to the existing service."""

    AFTER_LAST = "after_last"  # appended to the end of an existing block
    EARLY = "early"  # prepended to the start of an existing block
    MID_ROUTE = "mid_route"  # extra vehicle between existing trips


@dataclass
class AddTripRequest:
    """
    Parameters for ``add_trip``.

    Attributes:
        mode: Insert mode
        block_number: Block to extend (``AFTER_LAST``/``EARLY``)
        anchor_trip_number: Alternative to ``block_number``: a trip of the block
        start_time: Start of the new trip. Required for ``MID_ROUTE``; for
            ``EARLY`` it defaults to the block start minus the default run time;
            for ``AFTER_LAST`` it must equal the block's current end if given
        end_time: Target end for ``MID_ROUTE``; travel time is then solved evenly
        service_band: Band of the new trip; classified from the start when omitted
    """

    mode: TripInsertMode = TripInsertMode.AFTER_LAST
    block_number: int | None = None
    anchor_trip_number: int | None = None
    start_time: str | None = None
    end_time: str | None = None
    service_band: str | None = None

    def __post_init__(self):
        self.mode = TripInsertMode(self.mode)


# ==================== HELPERS ====================


def _segment_minutes(schedule: Schedule, band: str, config: EngineConfig) -> list[float]:
    segments = len(schedule.time_points) - 1
    service_band = schedule.band(band)
    if service_band is not None and service_band.segment_times and len(service_band.segment_times) == segments:
        return [float(v) for v in service_band.segment_times]
    return [config.trips.default_segment_minutes] * segments


def build_trip_times(
    time_point_ids: list[str],
    start_minutes: int,
    segment_minutes: list[float],
    template: list[int],
    end_minutes: int | None = None,
) -> tuple[dict[str, str], dict[str, str], dict[str, int]]:
    """
    Walk forward from ``start_minutes`` over the timepoints.

    Each stop's arrival is the previous departure plus the segment travel time
    and its departure adds the template recovery. With ``end_minutes`` the
    travel time is solved evenly as
    ``(end - start - sum(template)) / segments`` and the final departure is
    pinned to ``end_minutes`` exactly.

    Raises:
        TripLifecycleError: If the solved travel time is negative.
    """
    n_segments = len(time_point_ids) - 1
    if end_minutes is not None:
        per_segment = (end_minutes - start_minutes - sum(template)) / n_segments
        if per_segment < 0:
            raise TripLifecycleError(
                f"Cannot fit {sum(template)} min of recovery between "
                f"{minutes_to_time(start_minutes)} and {minutes_to_time(end_minutes)}"
            )
        segment_minutes = [per_segment] * n_segments

    arrival_times = {time_point_ids[0]: minutes_to_time(start_minutes)}
    departure_times = {time_point_ids[0]: minutes_to_time(start_minutes)}
    recovery_times = {time_point_ids[0]: 0}

    clock = float(start_minutes)
    for index in range(1, len(time_point_ids)):
        tp_id = time_point_ids[index]
        clock += segment_minutes[index - 1]
        arrival = round_half_up(clock)
        recovery = template[index]
        departure = arrival + recovery
        if end_minutes is not None and index == n_segments:
            departure = end_minutes
            arrival = end_minutes - recovery
        arrival_times[tp_id] = minutes_to_time(arrival)
        departure_times[tp_id] = minutes_to_time(departure)
        recovery_times[tp_id] = recovery
        clock = float(departure)

    return arrival_times, departure_times, recovery_times


def _lowest_unused_block(schedule: Schedule) -> int:
    used = set(schedule.block_numbers())
    block_number = 1
    while block_number in used:
        block_number += 1
    return block_number


def _resolve_block(schedule: Schedule, request: AddTripRequest) -> list[Trip] | None:
    if request.anchor_trip_number is not None:
        found = schedule.find_trip(request.anchor_trip_number)
        if found is None:
            logger.warning(f"⚠️ Anchor trip {request.anchor_trip_number} not found, no trip added")
            return None
        return schedule.block_trips(found[1].block_number)

    if request.block_number is None:
        raise TripLifecycleError(f"{request.mode.value} insert needs a block_number or anchor_trip_number")

    block = schedule.block_trips(request.block_number)
    if not block:
        logger.warning(f"⚠️ Block {request.block_number} has no trips, no trip added")
        return None
    return block


def _parse_required(value: str | None, label: str) -> int:
    minutes = time_to_minutes(value) if value else None
    if minutes is None:
        raise TripLifecycleError(f"A valid {label} is required, got {value!r}")
    return minutes


# ==================== ADD ====================


def add_trip(
    schedule: Schedule,
    request: AddTripRequest,
    config: EngineConfig | None = None,
) -> Schedule:
    """
    Insert one trip.

    ``AFTER_LAST`` continues the block from its last trip's real final departure
    (the previous tail gets its stashed recovery back first). ``EARLY`` ends at
    the block's first departure. ``MID_ROUTE`` opens the lowest unused block
    number, because the new trip cannot share either neighbouring vehicle.

    Returns:
        New finalized snapshot, or ``schedule`` when the anchor does not exist.

    Raises:
        TripLifecycleError: If the timing parameters cannot describe a trip.
    """
    config = config or EngineConfig()
    time_points = schedule.time_points
    if len(time_points) < 2:
        raise TripLifecycleError("A trip needs at least two timepoints")

    trips = list(schedule.trips)
    end_minutes = None

    if request.mode is TripInsertMode.MID_ROUTE:
        block_number = _lowest_unused_block(schedule)
        start_minutes = _parse_required(request.start_time, "start_time for a mid-route trip")
        if request.end_time:
            end_minutes = _parse_required(request.end_time, "end_time")
    else:
        block = _resolve_block(schedule, request)
        if block is None:
            return schedule
        block_number = block[0].block_number

        if request.mode is TripInsertMode.AFTER_LAST:
            anchor = block[-1]
            unstashed = restore_tail_recovery(anchor, time_points)
            if unstashed is not anchor:
                trips = [unstashed if t is anchor else t for t in trips]

            start_minutes = last_active_departure_minutes(unstashed, time_points)
            if start_minutes is None:
                raise TripLifecycleError(f"Trip {anchor.trip_number} has no final departure to continue from")
            if request.start_time and time_to_minutes(request.start_time) != start_minutes:
                raise TripLifecycleError(
                    f"Block {block_number} ends at {minutes_to_time(start_minutes)}, "
                    f"an appended trip cannot start at {request.start_time}"
                )
        else:
            end_minutes = first_departure_minutes(block[0], time_points)
            if end_minutes is None:
                raise TripLifecycleError(f"Block {block_number} has no first departure to end before")
            start_minutes = time_to_minutes(request.start_time) if request.start_time else None

    start_for_band = start_minutes if start_minutes is not None else end_minutes
    band = request.service_band
    if band is None:
        band = classify_service_band(
            minutes_to_time(start_for_band), schedule.travel_time_data, config.classifier.exclusions()
        )
        if schedule.service_bands and schedule.band(band) is None:
            logger.debug(f"Schedule has no {band} band, using {config.trips.default_service_band}")
            band = config.trips.default_service_band
    template = fit_template(schedule.recovery_templates.get(band, []), len(schedule.time_points))
    segments = _segment_minutes(schedule, band, config)

    if start_minutes is None:
        # early trip without a start: walk backwards by the default run time
        start_minutes = end_minutes - round_half_up(sum(segments) + sum(template))
    if end_minutes is not None and end_minutes <= start_minutes:
        raise TripLifecycleError(
            f"Trip must end after it starts ({minutes_to_time(start_minutes)} -> {minutes_to_time(end_minutes)})"
        )

    arrival_times, departure_times, recovery_times = build_trip_times(
        [tp.id for tp in time_points], start_minutes, segments, template, end_minutes
    )
    new_trip = Trip(
        trip_number=len(trips) + 1,
        block_number=block_number,
        departure_time=minutes_to_time(start_minutes),
        service_band=band,
        arrival_times=arrival_times,
        departure_times=departure_times,
        recovery_times=recovery_times,
        recovery_minutes=sum(recovery_times.values()),
    )
    trips.append(new_trip)

    logger.info(
        f"➕ Added {request.mode.value} trip in block {block_number} "
        f"({new_trip.departure_time} -> {departure_times[time_points[-1].id]}, {band})"
    )
    return finalize_schedule(schedule.with_trips(trips), config)


# ==================== END / RESTORE ====================


def _require_backups(trip: Trip, action: str):
    missing = [
        name
        for name in ("original_arrival_times", "original_departure_times", "original_recovery_times")
        if getattr(trip, name) is None
    ]
    if missing:
        raise ScheduleRebuildError(
            f"Cannot {action} trip {trip.trip_number}: missing backup(s) {', '.join(missing)}"
        )


def end_trip(
    schedule: Schedule,
    trip_number: int,
    time_point_index: int,
    config: EngineConfig | None = None,
) -> Schedule:
    """
    Truncate a trip at a timepoint and cancel the rest of its block.

    The live maps are backed up into ``original_*`` once (a second truncation
    re-cuts from the same backups), times after the cut are cleared, recovery is
    zero at and after the cut, and every chronologically later trip of the
    block is deleted.

    Raises:
        TripLifecycleError: If ``time_point_index`` is not a timepoint after the first.
    """
    found = schedule.find_trip(trip_number)
    if found is None:
        logger.warning(f"⚠️ Trip {trip_number} not found, nothing to end")
        return schedule

    time_points = schedule.time_points
    n_time_points = len(time_points)
    if not 1 <= time_point_index < n_time_points:
        raise TripLifecycleError(
            f"Trip can only end at timepoint index 1..{n_time_points - 1}, got {time_point_index}"
        )

    position, trip = found
    truncated = trip.copy()
    if trip.is_truncated:
        _require_backups(trip, "re-truncate")
    else:
        truncated.original_arrival_times = dict(trip.arrival_times)
        truncated.original_departure_times = dict(trip.departure_times)
        truncated.original_recovery_times = dict(trip.recovery_times)

    source_arrivals = truncated.original_arrival_times
    source_departures = truncated.original_departure_times
    source_recovery = truncated.original_recovery_times or {}

    arrival_times, departure_times, recovery_times = {}, {}, {}
    for index, tp in enumerate(time_points):
        if index < time_point_index:
            if tp.id in source_arrivals:
                arrival_times[tp.id] = source_arrivals[tp.id]
            if tp.id in source_departures:
                departure_times[tp.id] = source_departures[tp.id]
            recovery_times[tp.id] = int(source_recovery.get(tp.id, 0) or 0)
        else:
            recovery_times[tp.id] = 0
            if index == time_point_index and tp.id in source_arrivals:
                arrival_times[tp.id] = source_arrivals[tp.id]
                departure_times[tp.id] = source_arrivals[tp.id]

    truncated.arrival_times = arrival_times
    truncated.departure_times = departure_times
    truncated.recovery_times = recovery_times
    truncated.trip_end_index = time_point_index
    truncated.recovery_minutes = sum_active_recovery(truncated, time_points)

    block = schedule.block_trips(trip.block_number)
    block_position = next(i for i, t in enumerate(block) if t is trip)
    cancelled = block[block_position + 1:]
    cancelled_ids = {id(t) for t in cancelled}

    trips = []
    for other_position, other in enumerate(schedule.trips):
        if other_position == position:
            trips.append(truncated)
        elif id(other) not in cancelled_ids:
            trips.append(other)

    logger.info(f"✂️ Trip {trip_number} now ends at {time_points[time_point_index].name}")
    if cancelled:
        logger.warning(
            f"⚠️ Removed {len(cancelled)} later trip(s) of block {trip.block_number}: "
            f"{[t.trip_number for t in cancelled]}"
        )
    return finalize_schedule(schedule.with_trips(trips), config)


def restore_trip(schedule: Schedule, trip_number: int, config: EngineConfig | None = None) -> Schedule:
    """
    Undo ``end_trip`` for one trip by reinstating its ``original_*`` maps.

    Trips of the block deleted by the truncation are not regenerated.

    Raises:
        ScheduleRebuildError: If the trip is truncated but a backup is missing.
    """
    found = schedule.find_trip(trip_number)
    if found is None:
        logger.warning(f"⚠️ Trip {trip_number} not found, nothing to restore")
        return schedule

    position, trip = found
    if not trip.is_truncated:
        logger.debug(f"Trip {trip_number} is not truncated, nothing to restore")
        return schedule

    _require_backups(trip, "restore")
    restored = trip.copy()
    restored.arrival_times = dict(trip.original_arrival_times)
    restored.departure_times = dict(trip.original_departure_times)
    restored.recovery_times = {key: int(value or 0) for key, value in trip.original_recovery_times.items()}
    restored.trip_end_index = None
    restored.original_arrival_times = None
    restored.original_departure_times = None
    restored.original_recovery_times = None
    restored.recovery_minutes = sum_active_recovery(restored, schedule.time_points)

    trips = list(schedule.trips)
    trips[position] = restored

    logger.info(f"↩️ Restored trip {trip_number} to its full route")
    logger.warning(f"⚠️ Later trips of block {trip.block_number} removed by the truncation are not regenerated")
    return finalize_schedule(schedule.with_trips(trips), config)


# ==================== DELETE ====================


def delete_trip(schedule: Schedule, trip_number: int, config: EngineConfig | None = None) -> Schedule:
    """Remove one trip and renumber the survivors 1..N chronologically."""
    found = schedule.find_trip(trip_number)
    if found is None:
        logger.warning(f"⚠️ Trip {trip_number} not found, nothing to delete")
        return schedule

    position, trip = found
    trips = schedule.trips[:position] + schedule.trips[position + 1:]
    logger.info(f"🗑️ Deleted trip {trip_number} (block {trip.block_number})")
    return finalize_schedule(schedule.with_trips(trips), config)
