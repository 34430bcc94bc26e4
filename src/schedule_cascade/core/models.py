"""
Schedule data model.

The ``Schedule`` is the root aggregate: an ordered tuple of timepoints, the
service bands, the trips and the per-band recovery templates. Blocks are not
stored; they are derived by grouping trips with equal ``block_number``.

Snapshots are treated as immutable. Operations copy every trip they change
(``Trip.copy`` copies each nested map) and return a new ``Schedule``; trips an
operation does not touch may be shared between snapshots because nothing ever
mutates them in place.
"""

import logging
from dataclasses import dataclass, field, replace

from schedule_cascade.core.time_arithmetic import minutes_to_time, time_to_minutes

logger = logging.getLogger(__name__)

BAND_ORDER = (
    "Fastest Service",
    "Fast Service",
    "Standard Service",
    "Slow Service",
    "Slowest Service",
)

DEFAULT_BAND_COLORS = {
    "Fastest Service": "#2e7d32",
    "Fast Service": "#66bb6a",
    "Standard Service": "#ffc107",
    "Slow Service": "#ff9800",
    "Slowest Service": "#f44336",
}

FALLBACK_BAND_COLOR = "#6b7280"


@dataclass(frozen=True)
class TimePoint:
    """An ordered stop along the route where times are recorded."""

    id: str
    name: str
    sequence: int


@dataclass
class ServiceBand:
    """
    Named travel-time class.

    Attributes:
        name: Band label, one of ``BAND_ORDER`` or a free-form/legacy label
        color: Display colour
        total_minutes: Total end-to-end travel minutes for the band, if known
        segment_times: Travel minutes for each consecutive timepoint pair, if known
    """

    name: str
    color: str = FALLBACK_BAND_COLOR
    total_minutes: float | None = None
    segment_times: list[float] | None = None


@dataclass(frozen=True)
class TravelTimeRecord:
    """One row of the travel-time analysis table used for band classification."""

    time_period: str
    percentile50: float
    from_time_point: str | None = None
    to_time_point: str | None = None
    percentile80: float | None = None


@dataclass
class Trip:
    """
    One vehicle run across the timepoints.

    ``departure_time`` is a cache of the earliest known departure/arrival and is
    re-derived by the closing pass of every operation. ``original_*`` maps exist
    only while the trip is truncated (``trip_end_index`` set), and
    ``hidden_tail_recovery_times`` only while the trip is the tail of its block.
    """

    trip_number: int
    block_number: int
    departure_time: str
    service_band: str
    arrival_times: dict[str, str] = field(default_factory=dict)
    departure_times: dict[str, str] = field(default_factory=dict)
    recovery_times: dict[str, int] = field(default_factory=dict)
    recovery_minutes: int = 0
    trip_end_index: int | None = None
    original_arrival_times: dict[str, str] | None = None
    original_departure_times: dict[str, str] | None = None
    original_recovery_times: dict[str, int] | None = None
    hidden_tail_recovery_times: dict[str, int] | None = None

    def copy(self) -> "Trip":
        """Return a copy that shares no mutable substructure with this trip."""
        return replace(
            self,
            arrival_times=dict(self.arrival_times),
            departure_times=dict(self.departure_times),
            recovery_times=dict(self.recovery_times),
            original_arrival_times=_copy_map(self.original_arrival_times),
            original_departure_times=_copy_map(self.original_departure_times),
            original_recovery_times=_copy_map(self.original_recovery_times),
            hidden_tail_recovery_times=_copy_map(self.hidden_tail_recovery_times),
        )

    @property
    def is_truncated(self) -> bool:
        return self.trip_end_index is not None

    def recovery_at(self, time_point_id: str) -> int:
        return int(self.recovery_times.get(time_point_id, 0) or 0)

    def last_active_index(self, n_time_points: int) -> int:
        if self.trip_end_index is None:
            return n_time_points - 1
        return min(self.trip_end_index, n_time_points - 1)

    def is_active(self, index: int, n_time_points: int) -> bool:
        return 0 <= index <= self.last_active_index(n_time_points)


def _copy_map(values: dict | None) -> dict | None:
    return dict(values) if values is not None else None


@dataclass
class Schedule:
    """
    Root aggregate owned and replaced as one unit.

    Attributes:
        time_points: Timepoints ordered by ``sequence``
        service_bands: Known service bands
        trips: Trips, kept in chronological order by every operation
        recovery_templates: Band name -> recovery minutes per timepoint index
        travel_time_data: Optional travel-time analysis table for classification
    """

    time_points: tuple[TimePoint, ...]
    service_bands: list[ServiceBand] = field(default_factory=list)
    trips: list[Trip] = field(default_factory=list)
    recovery_templates: dict[str, list[int]] = field(default_factory=dict)
    travel_time_data: list[TravelTimeRecord] = field(default_factory=list)

    def __post_init__(self):
        self.time_points = tuple(sorted(self.time_points, key=lambda tp: tp.sequence))
        ids = [tp.id for tp in self.time_points]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Timepoint ids must be unique, got {ids}")

    @property
    def time_point_ids(self) -> list[str]:
        return [tp.id for tp in self.time_points]

    def index_of(self, time_point_id: str) -> int | None:
        for index, tp in enumerate(self.time_points):
            if tp.id == time_point_id:
                return index
        return None

    def find_trip(self, trip_number: int) -> tuple[int, Trip] | None:
        """Return ``(position, trip)`` for a trip number, or ``None``."""
        for position, trip in enumerate(self.trips):
            if trip.trip_number == trip_number:
                return position, trip
        return None

    def band(self, name: str) -> ServiceBand | None:
        for band in self.service_bands:
            if band.name == name:
                return band
        return None

    def block_trips(self, block_number: int) -> list[Trip]:
        """Trips of one block in chronological order."""
        trips = [trip for trip in self.trips if trip.block_number == block_number]
        return sorted(trips, key=lambda trip: _sort_minutes(trip, self.time_points))

    def block_numbers(self) -> list[int]:
        return sorted({trip.block_number for trip in self.trips})

    def with_trips(self, trips: list[Trip]) -> "Schedule":
        """New snapshot with a different trip list and copied templates."""
        return replace(
            self,
            trips=list(trips),
            recovery_templates={band: list(values) for band, values in self.recovery_templates.items()},
            service_bands=list(self.service_bands),
            travel_time_data=list(self.travel_time_data),
        )


# ==================== TRIP TIME HELPERS ====================

def stop_time(trip: Trip, time_point_id: str, prefer: str = "departure") -> str | None:
    """Departure (or arrival) at a timepoint, falling back to the other map."""
    if prefer == "departure":
        return trip.departure_times.get(time_point_id) or trip.arrival_times.get(time_point_id)
    return trip.arrival_times.get(time_point_id) or trip.departure_times.get(time_point_id)


def first_departure_minutes(trip: Trip, time_points: tuple[TimePoint, ...]) -> int | None:
    """Departure from the first timepoint, falling back to the cached start."""
    if time_points:
        value = stop_time(trip, time_points[0].id)
        if value:
            return time_to_minutes(value)
    return time_to_minutes(trip.departure_time)


def last_active_departure_minutes(trip: Trip, time_points: tuple[TimePoint, ...]) -> int | None:
    """Departure from the last active timepoint (arrival if no departure is stored)."""
    if not time_points:
        return None
    last_index = trip.last_active_index(len(time_points))
    value = stop_time(trip, time_points[last_index].id)
    return time_to_minutes(value) if value else None


def derive_departure_time(trip: Trip, time_points: tuple[TimePoint, ...]) -> str | None:
    """
    Earliest known time of a trip, walking timepoints in sequence order.

    The first timepoint with a departure (or, failing that, an arrival) wins.
    When no timepoint has a time, the earliest parseable departure in the map
    is used, and finally the cached ``departure_time``.
    """
    for tp in time_points:
        value = stop_time(trip, tp.id)
        if value:
            return value

    candidates = [
        (minutes, value)
        for value in trip.departure_times.values()
        if value and (minutes := time_to_minutes(value)) is not None
    ]
    if candidates:
        return min(candidates)[1]

    return trip.departure_time or None


def sum_active_recovery(trip: Trip, time_points: tuple[TimePoint, ...]) -> int:
    """Total recovery minutes over the trip's active timepoints."""
    n_time_points = len(time_points)
    return sum(
        trip.recovery_at(tp.id)
        for index, tp in enumerate(time_points)
        if trip.is_active(index, n_time_points)
    )


def shift_trip_times(trip: Trip, delta: int, shift_originals: bool = True) -> None:
    """
    Shift every arrival and departure time of a trip in place by ``delta`` minutes.

    Callers always operate on a copy. Truncation backups move with the trip so
    that a later restore lines up with the rest of its block.
    """
    if delta == 0:
        return

    trip.arrival_times = _shift_map(trip.arrival_times, delta)
    trip.departure_times = _shift_map(trip.departure_times, delta)
    if shift_originals:
        if trip.original_arrival_times is not None:
            trip.original_arrival_times = _shift_map(trip.original_arrival_times, delta)
        if trip.original_departure_times is not None:
            trip.original_departure_times = _shift_map(trip.original_departure_times, delta)

    start = time_to_minutes(trip.departure_time)
    if start is not None:
        trip.departure_time = minutes_to_time(start + delta)


def _shift_map(values: dict[str, str], delta: int) -> dict[str, str]:
    shifted = {}
    for key, value in values.items():
        minutes = time_to_minutes(value)
        shifted[key] = minutes_to_time(minutes + delta) if minutes is not None else value
    return shifted


def _sort_minutes(trip: Trip, time_points: tuple[TimePoint, ...]) -> tuple[int, int]:
    minutes = first_departure_minutes(trip, time_points)
    return (minutes if minutes is not None else 10**9, trip.trip_number)
