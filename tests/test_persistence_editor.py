"""
Tests for schedule files, persistence ports and the editor orchestrator.

🎯 Purpose:
    The editor commits one snapshot per effective operation and hands it to
    its port exactly once; no-op operations commit and save nothing.
"""

import json

import pytest

from schedule_cascade.editor import ScheduleEditor
from schedule_cascade.exceptions import ScheduleFormatError
from schedule_cascade.lifecycle.trips import AddTripRequest, TripInsertMode
from schedule_cascade.persistence.serialization import (
    load_schedule,
    save_schedule,
    schedule_from_dict,
    schedule_to_dict,
    trip_to_dict,
)
from schedule_cascade.persistence.stores import FileScheduleStore, InMemoryScheduleStore


class TestSerialization:
    """Test the plain-data schedule format."""

    def test_trip_keys_are_camel_case(self, chained_schedule):
        data = trip_to_dict(chained_schedule.trips[0])

        assert data["tripNumber"] == 1
        assert data["departureTimes"]["terminal"] == "06:43"
        assert "hiddenTailRecoveryTimes" not in data
        assert "tripEndIndex" not in data

        tail = trip_to_dict(chained_schedule.trips[4])
        assert tail["hiddenTailRecoveryTimes"] == {"mall": 2, "college": 1, "terminal": 5}

    @pytest.mark.parametrize("suffix", [".json", ".yaml"])
    def test_file_round_trip(self, chained_schedule, travel_time_data, tmp_path, suffix):
        schedule = chained_schedule.with_trips(chained_schedule.trips)
        schedule.travel_time_data = list(travel_time_data)

        path = save_schedule(schedule, tmp_path / f"schedule{suffix}")
        loaded = load_schedule(path)

        assert schedule_to_dict(loaded) == schedule_to_dict(schedule)
        print(f"✅ {suffix} round trip preserved {len(loaded.trips)} trips")

    def test_unquoted_yaml_times(self, tmp_path):
        """YAML 1.1 reads 10:30 as the base-60 integer 630; it comes back as a time."""
        path = tmp_path / "legacy.yaml"
        path.write_text(
            "timePoints:\n"
            "  - {id: a, name: A, sequence: 1}\n"
            "  - {id: b, name: B, sequence: 2}\n"
            "trips:\n"
            "  - tripNumber: 1\n"
            "    blockNumber: 1\n"
            "    departureTime: 10:30\n"
            "    serviceBand: Fast\n"
            "    arrivalTimes:\n"
            "      a: 10:30\n"
            "      b: 10:55\n"
            "    departureTimes:\n"
            "      a: 10:30\n"
            "      b: 10:58\n"
            "    recoveryTimes: {a: 0, b: 3}\n"
            "serviceBands:\n"
            "  - {name: Fast}\n"
        )

        schedule = load_schedule(path)

        trip = schedule.trips[0]
        assert trip.departure_time == "10:30"
        assert trip.departure_times == {"a": "10:30", "b": "10:58"}
        assert trip.recovery_minutes == 3
        assert schedule.service_bands[0].color == "#66bb6a"

    def test_missing_keys_raise_format_error(self):
        with pytest.raises(ScheduleFormatError):
            schedule_from_dict({"trips": []})
        with pytest.raises(ScheduleFormatError):
            schedule_from_dict({"timePoints": [{"id": "a"}], "trips": [{"blockNumber": 1}]})
        with pytest.raises(ScheduleFormatError):
            schedule_from_dict(["not", "a", "mapping"])

    def test_file_errors(self, chained_schedule, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_schedule(tmp_path / "missing.json")
        with pytest.raises(ScheduleFormatError, match="Unsupported"):
            save_schedule(chained_schedule, tmp_path / "schedule.csv")

        broken = tmp_path / "broken.json"
        broken.write_text("{not json")
        with pytest.raises(ScheduleFormatError, match="Cannot parse"):
            load_schedule(broken)


class TestStores:
    def test_file_store_writes_each_save(self, chained_schedule, tmp_path):
        store = FileScheduleStore(tmp_path / "out" / "schedule.json")

        store.save(chained_schedule)

        assert store.save_count == 1
        assert len(json.loads(store.path.read_text())["trips"]) == 5
        assert len(store.load().trips) == 5


class TestScheduleEditor:
    """Test commit, persistence and undo."""

    def test_effective_edit_is_saved_once(self, chained_schedule):
        store = InMemoryScheduleStore()
        editor = ScheduleEditor(chained_schedule, port=store)

        result = editor.apply_recovery_edit(1, "terminal", 8)

        assert len(store) == 1
        assert store.latest is result
        assert editor.schedule is result
        assert editor.commit_count == 1
        print("✅ One commit, one save")

    def test_noop_edit_is_not_saved(self, chained_schedule):
        store = InMemoryScheduleStore()
        editor = ScheduleEditor(chained_schedule, port=store)

        editor.apply_recovery_edit(99, "terminal", 8)
        editor.apply_recovery_edit(1, "mall", 2)
        editor.delete_trip(42)
        editor.enforce_tail_recovery_rules()

        assert len(store) == 0
        assert editor.commit_count == 0
        assert editor.schedule is chained_schedule

    def test_operations_chain_through_editor(self, chained_schedule):
        store = InMemoryScheduleStore()
        editor = ScheduleEditor(chained_schedule, port=store)

        editor.add_trip(AddTripRequest(TripInsertMode.AFTER_LAST, block_number=2))
        editor.end_trip(1, 2)
        editor.restore_trip(1)

        assert len(store) == 3
        assert [trip.trip_number for trip in editor.schedule.trips] == list(range(1, len(editor.schedule.trips) + 1))
        assert editor.validate() == []

    def test_undo(self, chained_schedule):
        store = InMemoryScheduleStore()
        editor = ScheduleEditor(chained_schedule, port=store)

        editor.delete_trip(3)
        assert len(editor.schedule.trips) == 4

        assert editor.undo()
        assert editor.schedule is chained_schedule
        assert store.latest is chained_schedule
        assert not editor.undo()

    def test_history_limit(self, chained_schedule):
        editor = ScheduleEditor(chained_schedule, history_limit=2)

        for minutes in (3, 4, 5):
            editor.apply_recovery_edit(1, "mall", minutes)

        assert len(editor.history) == 2

    def test_template_operations(self, chained_schedule):
        editor = ScheduleEditor(chained_schedule)

        editor.update_template_cell("Standard Service", 1, 3)
        editor.apply_recovery_template("Standard Service")

        assert editor.commit_count == 2
        assert editor.schedule.trips[0].recovery_times["mall"] == 3

    def test_period_band_map_is_cached(self, chained_schedule, travel_time_data):
        schedule = chained_schedule.with_trips(chained_schedule.trips)
        schedule.travel_time_data = list(travel_time_data)
        editor = ScheduleEditor(schedule)

        first = editor.period_band_map
        assert first[14] == "Fast Service"
        assert editor.period_band_map is first
        assert editor.classify_service_band("08:45") == "Slowest Service"
