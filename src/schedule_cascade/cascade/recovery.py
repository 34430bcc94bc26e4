"""
Recovery time cascade.

Changing the recovery (dwell) minutes at one timepoint moves that stop's
departure, every later stop of the trip, and then every later trip of the same
vehicle block, since each of those starts where the previous one ended.

``RecoveryCascadeEngine`` holds a working copy of the trip list so several
edits (a template application touches every trip of a band) cascade against
each other before the closing pass runs once. ``apply_recovery_edit`` is the
single-edit entry point.
"""

import logging
import time
from collections.abc import Callable

from schedule_cascade.bands.classifier import (
    PeriodExclusions,
    ServiceBandClassifier,
    determine_service_band_for_minutes,
)
from schedule_cascade.cascade.ordering import chronological_key, finalize_schedule
from schedule_cascade.cascade.tail import stash_tail_recovery
from schedule_cascade.config.config_manager import EngineConfig
from schedule_cascade.core.models import (
    Schedule,
    Trip,
    first_departure_minutes,
    last_active_departure_minutes,
    shift_trip_times,
    sum_active_recovery,
)
from schedule_cascade.core.time_arithmetic import minutes_to_time, period_bucket, time_to_minutes

logger = logging.getLogger(__name__)


class RecoveryCascadeEngine:
    """
    Applies recovery edits to a working copy of a schedule.

    Trips are copied the first time an edit touches them; untouched trips stay
    shared with the input snapshot, which is never modified.

    Example:
        ```python
        engine = RecoveryCascadeEngine(schedule)
        engine.edit(trip_number=3, time_point_id="tp4", new_recovery_minutes=5)
        new_schedule = engine.result()
        ```
    """

    def __init__(
        self,
        schedule: Schedule,
        config: EngineConfig | None = None,
        period_band_map: dict[int, str] | None = None,
        excluded_periods: PeriodExclusions | None = None,
    ):
        self.schedule = schedule
        self.config = config or EngineConfig()
        self.time_points = schedule.time_points
        self.trips: list[Trip] = list(schedule.trips)
        self.edits_applied = 0
        self.trips_shifted = 0

        self._owned: set[int] = set()
        if excluded_periods is None:
            excluded_periods = self.config.classifier.exclusions()
        self._classify = self._band_lookup(period_band_map, excluded_periods)

    def _band_lookup(
        self, period_band_map: dict[int, str] | None, excluded_periods: PeriodExclusions
    ) -> Callable[[int], str]:
        if period_band_map:
            return lambda minutes: determine_service_band_for_minutes(minutes, period_band_map)
        if self.schedule.travel_time_data:
            return ServiceBandClassifier(self.schedule.travel_time_data, excluded_periods).classify_minutes
        return lambda minutes: determine_service_band_for_minutes(minutes, None)

    # ==================== WORKING COPY ====================

    def _own(self, position: int) -> Trip:
        trip = self.trips[position]
        if id(trip) not in self._owned:
            trip = trip.copy()
            self.trips[position] = trip
            self._owned.add(id(trip))
        return trip

    def _adopt(self, position: int, trip: Trip):
        if trip is not self.trips[position]:
            self.trips[position] = trip
            self._owned.add(id(trip))

    def _locate(self, trip_number: int) -> int | None:
        for position, trip in enumerate(self.trips):
            if trip.trip_number == trip_number:
                return position
        return None

    def _block_positions(self, block_number: int) -> list[int]:
        positions = [p for p, trip in enumerate(self.trips) if trip.block_number == block_number]
        return sorted(positions, key=lambda p: chronological_key(self.trips[p], self.time_points))

    # ==================== EDITS ====================

    def edit(self, trip_number: int, time_point_id: str, new_recovery_minutes: int) -> bool:
        """
        Set the recovery minutes of one trip at one timepoint and cascade.

        Returns:
            True when the working copy changed. Unknown trips or timepoints,
            the first timepoint (a trip starts when the one before it ends) and
            timepoints beyond a truncated trip's end are no-ops.

        Raises:
            ValueError: If ``new_recovery_minutes`` is negative.
        """
        new_recovery_minutes = int(new_recovery_minutes)
        if new_recovery_minutes < 0:
            raise ValueError(f"Recovery minutes must be non-negative, got {new_recovery_minutes}")

        position = self._locate(trip_number)
        if position is None:
            logger.warning(f"⚠️ Trip {trip_number} not found, recovery edit ignored")
            return False

        index = self.schedule.index_of(time_point_id)
        if index is None:
            logger.warning(f"⚠️ Timepoint {time_point_id!r} not found, recovery edit ignored")
            return False

        if index == 0:
            logger.warning(
                f"⚠️ Recovery at the first timepoint {time_point_id!r} is fixed at 0, edit of trip {trip_number} ignored"
            )
            return False

        trip = self.trips[position]
        if not trip.is_active(index, len(self.time_points)):
            logger.warning(
                f"⚠️ Timepoint {time_point_id!r} is past the end of truncated trip {trip_number}, edit ignored"
            )
            return False

        block = self._block_positions(trip.block_number)
        if len(block) >= self.config.tail.min_block_trips and block[-1] == position:
            return self._edit_tail_stash(position, time_point_id, new_recovery_minutes)

        old_recovery = trip.recovery_at(time_point_id)
        if old_recovery == new_recovery_minutes and _departure_consistent(trip, time_point_id):
            logger.debug(f"Trip {trip_number} already has {old_recovery} min at {time_point_id}")
            return False

        old_end = last_active_departure_minutes(trip, self.time_points)

        updated = self._own(position)
        self._apply_within_trip(updated, index, new_recovery_minutes)
        new_end = last_active_departure_minutes(updated, self.time_points)
        self.edits_applied += 1

        logger.debug(
            f"Trip {trip_number} recovery at {time_point_id}: {old_recovery} -> {new_recovery_minutes} min"
        )

        if old_end is not None and new_end is not None and new_end != old_end:
            self._cascade_block(block, block.index(position))
        return True

    def _edit_tail_stash(self, position: int, time_point_id: str, minutes: int) -> bool:
        """A block's enforced tail keeps zero live recovery; the edit goes to its stash."""
        trip = self.trips[position]
        self._adopt(position, stash_tail_recovery(trip, self.time_points))

        current = (self.trips[position].hidden_tail_recovery_times or {}).get(time_point_id, 0)
        if current == minutes:
            return self.trips[position] is not trip

        updated = self._own(position)
        stash = dict(updated.hidden_tail_recovery_times or {})
        if minutes:
            stash[time_point_id] = minutes
        else:
            stash.pop(time_point_id, None)
        updated.hidden_tail_recovery_times = stash or None
        self.edits_applied += 1

        logger.info(
            f"📌 Trip {trip.trip_number} ends block {trip.block_number}; "
            f"recovery {minutes} min at {time_point_id} kept for when a trip follows it"
        )
        return True

    def _apply_within_trip(self, trip: Trip, index: int, minutes: int):
        """Set recovery at ``index`` and move the rest of the trip by the change."""
        time_points = self.time_points
        n_time_points = len(time_points)
        tp_id = time_points[index].id

        old_recovery = trip.recovery_at(tp_id)
        old_departure = time_to_minutes(trip.departure_times.get(tp_id))
        trip.recovery_times[tp_id] = minutes

        arrival = time_to_minutes(trip.arrival_times.get(tp_id))
        if arrival is None:
            logger.warning(f"⚠️ Trip {trip.trip_number} has no arrival at {tp_id}, recovery stored only")
            trip.recovery_minutes = sum_active_recovery(trip, time_points)
            return

        new_departure = arrival + minutes
        trip.departure_times[tp_id] = minutes_to_time(new_departure)
        delta = new_departure - old_departure if old_departure is not None else minutes - old_recovery

        if delta:
            for later in range(index + 1, n_time_points):
                if not trip.is_active(later, n_time_points):
                    break
                later_id = time_points[later].id
                for times in (trip.arrival_times, trip.departure_times):
                    value = time_to_minutes(times.get(later_id))
                    if value is not None:
                        times[later_id] = minutes_to_time(value + delta)

        trip.recovery_minutes = sum_active_recovery(trip, time_points)

    def _cascade_block(self, block: list[int], edited_at: int):
        """
        Chain every later trip of the block to the end of the one before it.

        Bounded by ``cascade.max_iterations`` shifted trips and
        ``cascade.max_seconds`` per block; when a bound is hit the remaining
        trips keep their times and a warning is logged.
        """
        limits = self.config.cascade
        started = time.monotonic()
        iterations = 0

        for k in range(edited_at + 1, len(block)):
            iterations += 1
            if iterations > limits.max_iterations or time.monotonic() - started > limits.max_seconds:
                logger.warning(
                    f"⚠️ Cascade guard hit in block {self.trips[block[k]].block_number} after "
                    f"{iterations - 1} trips; {len(block) - k} later trip(s) left unchanged"
                )
                return

            previous = self.trips[block[k - 1]]
            trip = self.trips[block[k]]
            new_start = last_active_departure_minutes(previous, self.time_points)
            old_start = first_departure_minutes(trip, self.time_points)
            if new_start is None or old_start is None:
                logger.warning(
                    f"⚠️ Cannot chain trip {trip.trip_number} in block {trip.block_number}: "
                    "missing times, cascade stopped"
                )
                return

            shift = new_start - old_start
            if shift == 0:
                continue

            updated = self._own(block[k])
            shift_trip_times(updated, shift)
            self._reevaluate_band(updated, old_start, new_start)
            self.trips_shifted += 1

    def _reevaluate_band(self, trip: Trip, old_start: int, new_start: int):
        if period_bucket(old_start) == period_bucket(new_start):
            return
        band = self._classify(new_start)
        if band != trip.service_band:
            # segment travel times stay those of the previous band
            logger.info(
                f"🔄 Trip {trip.trip_number} moved from {trip.service_band} to {band}; "
                "segment travel times not recomputed"
            )
            trip.service_band = band

    # ==================== RESULT ====================

    @property
    def changed(self) -> bool:
        return bool(self._owned)

    def result(self) -> Schedule:
        """Finalized snapshot, or the input snapshot when nothing changed."""
        if not self.changed:
            return self.schedule
        if self.trips_shifted:
            logger.info(f"⏩ Cascade shifted {self.trips_shifted} later trip(s)")
        return finalize_schedule(self.schedule.with_trips(self.trips), self.config)


def _departure_consistent(trip: Trip, time_point_id: str) -> bool:
    arrival = time_to_minutes(trip.arrival_times.get(time_point_id))
    departure = time_to_minutes(trip.departure_times.get(time_point_id))
    if arrival is None or departure is None:
        return True
    return departure == arrival + trip.recovery_at(time_point_id)


def apply_recovery_edit(
    schedule: Schedule,
    trip_number: int,
    time_point_id: str,
    new_recovery_minutes: int,
    config: EngineConfig | None = None,
    period_band_map: dict[int, str] | None = None,
    excluded_periods: PeriodExclusions | None = None,
) -> Schedule:
    """
    Change one recovery value and cascade the change through trip and block.

    Args:
        schedule: Current snapshot (not modified)
        trip_number: Trip to edit
        time_point_id: Timepoint whose recovery changes
        new_recovery_minutes: New recovery minutes (>= 0)
        config: Engine configuration (guards, tail rule scope, exclusions)
        period_band_map: Optional precomputed 30-minute bucket -> band table
            used when shifted trips change period
        excluded_periods: Overrides ``config.classifier.excluded_periods``

    Returns:
        New finalized snapshot, or ``schedule`` itself when the edit was a no-op.
    """
    engine = RecoveryCascadeEngine(schedule, config, period_band_map, excluded_periods)
    engine.edit(trip_number, time_point_id, new_recovery_minutes)
    return engine.result()
