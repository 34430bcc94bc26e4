"""
Tests for the recovery time cascade.

🎯 Purpose:
    A recovery edit moves the departure at the edited stop, every later stop
    of the trip and then every later trip of the same block. These tests pin
    the exact times for small schedules and check that trips outside the
    block and the input snapshot are never touched.
"""

import itertools
import logging
from types import SimpleNamespace

import pytest

from schedule_cascade.analysis.validation import validate_schedule
from schedule_cascade.cascade.recovery import RecoveryCascadeEngine, apply_recovery_edit
from schedule_cascade.config.config_manager import CascadeConfig, EngineConfig


class TestWithinTrip:
    """Edits that stay inside one trip."""

    def test_single_trip_block_keeps_recovery(self, single_trip_schedule):
        """
        A one-trip block is exempt from the tail rule, so the edit applies to
        the live recovery: B departs at 06:30 + 5 = 06:35.
        """
        result = apply_recovery_edit(single_trip_schedule, 1, "B", 5)
        trip = result.trips[0]

        assert trip.arrival_times == {"A": "06:00", "B": "06:30"}
        assert trip.departure_times == {"A": "06:00", "B": "06:35"}
        assert trip.recovery_times == {"A": 0, "B": 5}
        assert trip.recovery_minutes == 5
        assert single_trip_schedule.trips[0].departure_times["B"] == "06:33"
        print("✅ Single-trip edit: B departs 06:35, input snapshot untouched")

    def test_later_stops_shift_by_the_change(self, chained_schedule):
        """Raising mall recovery on trip 1 from 2 to 6 moves college and terminal by 4."""
        result = apply_recovery_edit(chained_schedule, 1, "mall", 6)
        trip = result.trips[0]

        assert trip.departure_times["mall"] == "06:16"
        assert trip.arrival_times["college"] == "06:31"
        assert trip.departure_times["college"] == "06:32"
        assert trip.arrival_times["terminal"] == "06:42"
        assert trip.departure_times["terminal"] == "06:47"
        assert trip.recovery_minutes == 12

    def test_negative_recovery_is_rejected(self, chained_schedule):
        with pytest.raises(ValueError, match="non-negative"):
            apply_recovery_edit(chained_schedule, 1, "mall", -1)


class TestBlockCascade:
    """Edits that ripple into later trips of the block."""

    def test_two_trip_block_cascade(self, two_trip_block_schedule):
        """
        Trip 1 reaches C at 06:40; 10 minutes of recovery there push its
        final departure to 06:50 and trip 2 follows it to 06:50 -> 07:30.
        """
        result = apply_recovery_edit(two_trip_block_schedule, 1, "C", 10)
        first, second = result.trips

        assert first.departure_times["C"] == "06:50"
        assert second.departure_time == "06:50"
        assert second.departure_times == {"A": "06:50", "B": "07:10", "C": "07:30"}
        assert second.arrival_times == {"A": "06:50", "B": "07:10", "C": "07:30"}
        assert second.recovery_minutes == 0
        print("✅ Trip 2 chained to 06:50")

    def test_cascade_reaches_every_later_block_trip(self, chained_schedule):
        """+3 at trip 1's terminal moves trips 3 and 5 of block 1, not block 2."""
        result = apply_recovery_edit(chained_schedule, 1, "terminal", 8)
        by_number = {trip.trip_number: trip for trip in result.trips}

        assert by_number[1].departure_times["terminal"] == "06:46"
        assert by_number[3].departure_time == "06:46"
        assert by_number[3].departure_times["terminal"] == "07:29"
        assert by_number[5].departure_time == "07:29"
        assert by_number[5].arrival_times["terminal"] == "08:07"

        assert by_number[2] is chained_schedule.trips[1]
        assert by_number[4] is chained_schedule.trips[3]
        assert validate_schedule(result) == []
        print("✅ Block 1 re-chained, block 2 shared with the input snapshot")

    def test_cascade_reorders_and_renumbers(self, chained_schedule):
        """
        +20 at trip 1's mall starts trip 3 at 07:03, tied with trip 4; the tie
        goes to the lower block number.
        """
        result = apply_recovery_edit(chained_schedule, 1, "mall", 22)

        starts = [(trip.trip_number, trip.block_number, trip.departure_time) for trip in result.trips]
        assert starts == [
            (1, 1, "06:00"),
            (2, 2, "06:20"),
            (3, 1, "07:03"),
            (4, 2, "07:03"),
            (5, 1, "07:46"),
        ]

    def test_shifted_trip_changes_band_when_period_changes(self, chained_schedule, caplog):
        """Without analysis data the static hours apply: 07:03 is Fastest Service."""
        with caplog.at_level(logging.INFO):
            result = apply_recovery_edit(chained_schedule, 1, "mall", 22)

        assert result.trips[0].service_band == "Standard Service"
        assert result.trips[2].service_band == "Fastest Service"
        assert result.trips[4].service_band == "Fastest Service"
        assert "segment travel times not recomputed" in caplog.text

    def test_period_band_map_takes_precedence(self, chained_schedule):
        # bucket 14 is 07:00 - 07:30
        result = apply_recovery_edit(chained_schedule, 1, "mall", 22, period_band_map={14: "Slow Service"})
        assert result.trips[2].service_band == "Slow Service"

    def test_cascade_guard_stops_propagation(self, chained_schedule, caplog):
        """With one iteration allowed only the next trip of the block moves."""
        config = EngineConfig(cascade=CascadeConfig(max_iterations=1))

        with caplog.at_level(logging.WARNING):
            result = apply_recovery_edit(chained_schedule, 1, "terminal", 8, config=config)

        by_number = {trip.trip_number: trip for trip in result.trips}
        assert by_number[3].departure_time == "06:46"
        assert by_number[5].departure_time == "07:26"
        assert "Cascade guard hit" in caplog.text
        print("✅ Cascade guard left the rest of the block unchanged")

    def test_wall_clock_guard_stops_propagation(self, chained_schedule, caplog, monkeypatch):
        """Once max_seconds has passed the remaining trips of the block keep their times."""
        clock = itertools.chain([0.0, 0.0], itertools.repeat(100.0))
        monkeypatch.setattr(
            "schedule_cascade.cascade.recovery.time", SimpleNamespace(monotonic=lambda: next(clock))
        )

        with caplog.at_level(logging.WARNING):
            result = apply_recovery_edit(chained_schedule, 1, "terminal", 8)

        by_number = {trip.trip_number: trip for trip in result.trips}
        assert by_number[3].departure_time == "06:46"
        assert by_number[5].departure_time == "07:26"
        assert by_number[5].arrival_times == chained_schedule.trips[4].arrival_times
        assert "Cascade guard hit" in caplog.text
        print("✅ Wall-clock guard left the rest of the block unchanged")


class TestNoOps:
    """Edits that change nothing return the input snapshot itself."""

    def test_unknown_trip(self, chained_schedule, caplog):
        with caplog.at_level(logging.WARNING):
            assert apply_recovery_edit(chained_schedule, 99, "mall", 3) is chained_schedule
        assert "Trip 99 not found" in caplog.text

    def test_unknown_time_point(self, chained_schedule):
        assert apply_recovery_edit(chained_schedule, 1, "airport", 3) is chained_schedule

    def test_same_value(self, chained_schedule):
        assert apply_recovery_edit(chained_schedule, 1, "mall", 2) is chained_schedule

    def test_first_time_point_recovery_is_fixed(self, chained_schedule, caplog):
        """A trip leaves its first stop when the previous trip of its block ends there."""
        with caplog.at_level(logging.WARNING):
            result = apply_recovery_edit(chained_schedule, 3, "depot", 5)

        assert result is chained_schedule
        assert validate_schedule(result) == []
        assert "fixed at 0" in caplog.text

    def test_edit_past_truncation_is_ignored(self, chained_schedule):
        trip = chained_schedule.trips[1].copy()
        trip.trip_end_index = 1
        trip.original_arrival_times = dict(trip.arrival_times)
        trip.original_departure_times = dict(trip.departure_times)
        trip.original_recovery_times = dict(trip.recovery_times)
        trips = list(chained_schedule.trips)
        trips[1] = trip
        schedule = chained_schedule.with_trips(trips)

        assert apply_recovery_edit(schedule, 2, "college", 4) is schedule


class TestTailEdits:
    """The last trip of a block keeps zero live recovery."""

    def test_tail_edit_goes_to_stash(self, chained_schedule):
        result = apply_recovery_edit(chained_schedule, 5, "mall", 4)
        tail = result.trips[4]

        assert tail.recovery_times["mall"] == 0
        assert tail.recovery_minutes == 0
        assert tail.hidden_tail_recovery_times == {"mall": 4, "college": 1, "terminal": 5}
        assert tail.departure_times == chained_schedule.trips[4].departure_times
        print("✅ Tail edit stored in the hidden stash")

    def test_tail_edit_to_zero_removes_stash_entry(self, chained_schedule):
        result = apply_recovery_edit(chained_schedule, 5, "terminal", 0)
        assert result.trips[4].hidden_tail_recovery_times == {"mall": 2, "college": 1}

    def test_tail_edit_with_same_value_is_noop(self, chained_schedule):
        assert apply_recovery_edit(chained_schedule, 5, "college", 1) is chained_schedule


class TestEngineBatch:
    """Several edits against one working copy."""

    def test_edits_compose_before_closing_pass(self, chained_schedule):
        engine = RecoveryCascadeEngine(chained_schedule)

        assert engine.edit(1, "terminal", 6)
        assert engine.edit(3, "terminal", 6)
        assert engine.changed
        result = engine.result()

        by_number = {trip.trip_number: trip for trip in result.trips}
        assert by_number[3].departure_time == "06:44"
        assert by_number[3].departure_times["terminal"] == "07:28"
        assert by_number[5].departure_time == "07:28"
        assert engine.trips_shifted == 3
        assert chained_schedule.trips[2].departure_time == "06:43"

    def test_unchanged_engine_returns_input(self, chained_schedule):
        engine = RecoveryCascadeEngine(chained_schedule)
        assert not engine.edit(42, "mall", 1)
        assert engine.result() is chained_schedule
