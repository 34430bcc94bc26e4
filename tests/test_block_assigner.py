"""
Tests for vehicle block assignment.

Windows of the chained_schedule fixture (minutes after midnight):
    trip 1 (360, 403)  trip 2 (380, 423)  trip 3 (403, 446)
    trip 4 (423, 461)  trip 5 (446, 484)
A trip starting exactly when another ends can reuse that vehicle.
"""

import logging

from schedule_cascade.blocks.assigner import (
    LEGACY_BAND,
    assign_blocks,
    compute_blocks_for_trips,
    compute_trip_window,
    needs_block_recompute,
    reassign_blocks_if_needed,
    trips_from_time_matrix,
)
from schedule_cascade.core.models import Trip

from fixtures import ROUTE_IDS, ROUTE_RECOVERY, ROUTE_TRAVEL, build_trip, make_time_points


def _with_block_numbers(schedule, numbers):
    trips = []
    for trip, number in zip(schedule.trips, numbers):
        trip = trip.copy()
        trip.block_number = number
        trips.append(trip)
    return schedule.with_trips(trips)


class TestTripWindow:
    """Test service window extraction."""

    def test_window_spans_first_to_last_stop(self, chained_schedule):
        time_points = chained_schedule.time_points

        assert compute_trip_window(chained_schedule.trips[0], time_points) == (360, 403)
        # tail trip: stashed recovery means it ends at its terminal arrival
        assert compute_trip_window(chained_schedule.trips[4], time_points) == (446, 484)

    def test_window_unwraps_midnight(self):
        time_points = make_time_points(["A", "B"])
        trip = Trip(
            trip_number=1,
            block_number=1,
            departure_time="23:50",
            service_band="Standard Service",
            arrival_times={"A": "23:50", "B": "00:20"},
            departure_times={"A": "23:50", "B": "00:20"},
        )

        assert compute_trip_window(trip, time_points) == (1430, 1460)
        print("✅ Overnight trip window unwrapped")

    def test_window_without_times_is_none(self, route_time_points):
        trip = Trip(trip_number=1, block_number=1, departure_time="", service_band="Standard Service")
        assert compute_trip_window(trip, route_time_points) is None


class TestNeedsRecompute:
    """Test detection of unusable block numbers."""

    def test_valid_blocks_are_kept(self, chained_schedule):
        assert not needs_block_recompute(chained_schedule.trips, chained_schedule.time_points)

    def test_sequential_numbering_triggers_recompute(self, chained_schedule):
        schedule = _with_block_numbers(chained_schedule, [1, 2, 3, 4, 5])
        assert needs_block_recompute(schedule.trips, schedule.time_points)

    def test_unique_numbering_triggers_recompute(self, chained_schedule):
        schedule = _with_block_numbers(chained_schedule, [10, 20, 30, 40, 50])
        assert needs_block_recompute(schedule.trips, schedule.time_points)

    def test_non_positive_block_triggers_recompute(self, chained_schedule):
        schedule = _with_block_numbers(chained_schedule, [1, 2, 1, 0, 1])
        assert needs_block_recompute(schedule.trips, schedule.time_points)

    def test_overlap_triggers_recompute(self, route_time_points):
        trips = [
            build_trip(1, 1, "06:00", ROUTE_TRAVEL, ROUTE_RECOVERY, ROUTE_IDS),
            build_trip(2, 1, "06:20", ROUTE_TRAVEL, ROUTE_RECOVERY, ROUTE_IDS),
            build_trip(3, 2, "06:30", ROUTE_TRAVEL, ROUTE_RECOVERY, ROUTE_IDS),
        ]
        assert needs_block_recompute(trips, route_time_points)
        print("✅ Overlapping trips in one block detected")

    def test_empty_schedule(self):
        assert not needs_block_recompute([])


class TestGreedyAssignment:
    """Test interval partitioning."""

    def test_assign_blocks_reuses_free_vehicles(self):
        windows = [(0, 10), (5, 15), (10, 20), None, (16, 30)]
        assert assign_blocks(windows) == [1, 2, 1, None, 2]

    def test_reserved_numbers_are_skipped(self):
        assert assign_blocks([(0, 10), (5, 15)], reserved={1}) == [2, 3]

    def test_reassign_recovers_vehicle_chains(self, chained_schedule):
        """Row-number blocks are re-partitioned into the two real vehicles."""
        schedule = _with_block_numbers(chained_schedule, [1, 2, 3, 4, 5])

        result = reassign_blocks_if_needed(schedule)

        assert [trip.block_number for trip in result.trips] == [1, 2, 1, 2, 1]
        assert [trip.trip_number for trip in result.trips] == [1, 2, 3, 4, 5]
        print(f"✅ Blocks reassigned: {[trip.block_number for trip in result.trips]}")

    def test_reassign_is_idempotent(self, chained_schedule):
        schedule = _with_block_numbers(chained_schedule, [1, 2, 3, 4, 5])

        first = reassign_blocks_if_needed(schedule)
        second = reassign_blocks_if_needed(first)

        assert second is first

    def test_valid_schedule_is_returned_unchanged(self, chained_schedule):
        assert reassign_blocks_if_needed(chained_schedule) is chained_schedule

    def test_trip_without_times_keeps_its_block(self, chained_schedule, caplog):
        broken = Trip(trip_number=6, block_number=2, departure_time="", service_band="Standard Service")
        schedule = chained_schedule.with_trips(chained_schedule.trips + [broken])

        with caplog.at_level(logging.WARNING):
            result = compute_blocks_for_trips(schedule)

        assert [trip.block_number for trip in result.trips] == [1, 3, 1, 3, 1, 2]
        assert "keeping block 2" in caplog.text
        print("✅ Unusable trip keeps its block and the number is reserved")


class TestTimeMatrixImport:
    """Test building trips from a plain stop-time matrix."""

    def test_matrix_rows_become_blocked_trips(self, caplog):
        time_points = make_time_points(["A", "B"])
        matrix = [
            ["06:00", "06:30"],
            ["06:10", "06:40"],
            ["06:30", "07:00"],
            ["", ""],
        ]

        with caplog.at_level(logging.WARNING):
            trips = trips_from_time_matrix(matrix, time_points)

        assert len(trips) == 3
        assert [trip.block_number for trip in trips] == [1, 2, 1]
        assert all(trip.service_band == LEGACY_BAND for trip in trips)
        assert trips[1].departure_times == {"A": "06:10", "B": "06:40"}
        assert trips[1].recovery_minutes == 0
        assert "Skipping matrix row" in caplog.text
