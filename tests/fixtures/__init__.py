"""Test fixtures for schedule cascade tests."""

import pytest

from schedule_cascade.cascade.ordering import finalize_schedule
from schedule_cascade.core.models import BAND_ORDER, Schedule, ServiceBand, TimePoint, TravelTimeRecord, Trip
from schedule_cascade.core.time_arithmetic import minutes_to_time, time_to_minutes

ROUTE_IDS = ["depot", "mall", "college", "terminal"]
ROUTE_TRAVEL = [10, 15, 10]
ROUTE_RECOVERY = [0, 2, 1, 5]


def make_time_points(ids: list[str]) -> tuple[TimePoint, ...]:
    return tuple(TimePoint(id=tp_id, name=tp_id.title(), sequence=index + 1) for index, tp_id in enumerate(ids))


def build_trip(
    trip_number: int,
    block_number: int,
    start: str,
    travel: list[int],
    recovery: list[int],
    time_point_ids: list[str],
    band: str = "Standard Service",
) -> Trip:
    """
    Build a trip by walking the route from ``start``.

    ``travel`` has one entry per segment and ``recovery`` one per timepoint;
    each departure is the arrival plus that stop's recovery.
    """
    clock = time_to_minutes(start)
    arrival_times, departure_times, recovery_times = {}, {}, {}
    for index, tp_id in enumerate(time_point_ids):
        if index > 0:
            clock += travel[index - 1]
        arrival_times[tp_id] = minutes_to_time(clock)
        recovery_times[tp_id] = recovery[index]
        clock += recovery[index]
        departure_times[tp_id] = minutes_to_time(clock)

    return Trip(
        trip_number=trip_number,
        block_number=block_number,
        departure_time=departure_times[time_point_ids[0]],
        service_band=band,
        arrival_times=arrival_times,
        departure_times=departure_times,
        recovery_times=recovery_times,
        recovery_minutes=sum(recovery),
    )


def build_block(block_number: int, start: str, n_trips: int, first_trip_number: int = 1) -> list[Trip]:
    """Consecutive route trips of one block, each starting where the last ended."""
    trips = []
    departure = start
    for offset in range(n_trips):
        trip = build_trip(
            first_trip_number + offset, block_number, departure, ROUTE_TRAVEL, ROUTE_RECOVERY, ROUTE_IDS
        )
        trips.append(trip)
        departure = trip.departure_times[ROUTE_IDS[-1]]
    return trips


def route_bands() -> list[ServiceBand]:
    return [ServiceBand(name=name) for name in BAND_ORDER]


@pytest.fixture
def route_time_points():
    """Four timepoints: depot -> mall -> college -> terminal."""
    return make_time_points(ROUTE_IDS)


@pytest.fixture
def raw_chained_trips():
    """
    Two blocks of chained route trips before any closing pass.

    Each trip takes 43 minutes (35 travel + 8 recovery):
    - Block 1: 06:00, 06:43, 07:26
    - Block 2: 06:20, 07:03
    """
    return build_block(1, "06:00", 3, first_trip_number=1) + build_block(2, "06:20", 2, first_trip_number=4)


@pytest.fixture
def chained_schedule(route_time_points, raw_chained_trips):
    """
    Finalized two-block schedule.

    Chronological numbering gives:
        1 = 06:00 (block 1), 2 = 06:20 (block 2), 3 = 06:43 (block 1),
        4 = 07:03 (block 2, tail), 5 = 07:26 (block 1, tail)
    Tails carry zero live recovery; their real values sit in the stash.
    """
    schedule = Schedule(
        time_points=route_time_points,
        service_bands=route_bands(),
        trips=raw_chained_trips,
        recovery_templates={"Standard Service": list(ROUTE_RECOVERY)},
    )
    return finalize_schedule(schedule)


@pytest.fixture
def single_trip_schedule():
    """
    One trip, one block, two timepoints A -> B.

    Departs A at 06:00, arrives B at 06:30 and leaves after 3 minutes.
    """
    trip = build_trip(1, 1, "06:00", [30], [0, 3], ["A", "B"])
    return Schedule(time_points=make_time_points(["A", "B"]), service_bands=route_bands(), trips=[trip])


@pytest.fixture
def two_trip_block_schedule():
    """
    Block 1 with two trips over A -> B -> C and no recovery anywhere.

    Trip 1 runs 06:00 -> 06:40, trip 2 continues 06:40 -> 07:20.
    """
    ids = ["A", "B", "C"]
    trips = [
        build_trip(1, 1, "06:00", [20, 20], [0, 0, 0], ids),
        build_trip(2, 1, "06:40", [20, 20], [0, 0, 0], ids),
    ]
    return Schedule(time_points=make_time_points(ids), service_bands=route_bands(), trips=trips)


@pytest.fixture
def travel_time_data():
    """
    Analysis table with five periods, two segments each.

    Period totals are 10, 20, 30, 40 and 50 minutes (07:00 through 09:30).
    """
    records = []
    for index, total in enumerate([10, 20, 30, 40, 50]):
        start = time_to_minutes("07:00") + index * 30
        label = f"{minutes_to_time(start)} - {minutes_to_time(start + 30)}"
        records.append(TravelTimeRecord(label, total / 2, from_time_point="depot", to_time_point="mall"))
        records.append(TravelTimeRecord(label, total / 2, from_time_point="mall", to_time_point="college"))
    return records
