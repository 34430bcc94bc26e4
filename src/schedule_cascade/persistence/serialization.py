"""
Schedule (de)serialization.

Schedules are stored as plain dictionaries with camelCase keys
(``tripNumber``, ``arrivalTimes``, ``hiddenTailRecoveryTimes`` ...), written
to JSON or YAML depending on the file suffix. Optional trip fields are only
written when set.
"""

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from schedule_cascade.bands.classifier import service_band_color
from schedule_cascade.core.models import Schedule, ServiceBand, TimePoint, TravelTimeRecord, Trip, sum_active_recovery
from schedule_cascade.core.time_arithmetic import minutes_to_time
from schedule_cascade.exceptions import ScheduleFormatError

logger = logging.getLogger(__name__)

JSON_SUFFIXES = {".json"}
YAML_SUFFIXES = {".yaml", ".yml"}

_OPTIONAL_TRIP_FIELDS = {
    "trip_end_index": "tripEndIndex",
    "original_arrival_times": "originalArrivalTimes",
    "original_departure_times": "originalDepartureTimes",
    "original_recovery_times": "originalRecoveryTimes",
    "hidden_tail_recovery_times": "hiddenTailRecoveryTimes",
}


# ==================== TO DICT ====================


def trip_to_dict(trip: Trip) -> dict[str, Any]:
    data = {
        "tripNumber": trip.trip_number,
        "blockNumber": trip.block_number,
        "departureTime": trip.departure_time,
        "serviceBand": trip.service_band,
        "arrivalTimes": dict(trip.arrival_times),
        "departureTimes": dict(trip.departure_times),
        "recoveryTimes": dict(trip.recovery_times),
        "recoveryMinutes": trip.recovery_minutes,
    }
    for attribute, key in _OPTIONAL_TRIP_FIELDS.items():
        value = getattr(trip, attribute)
        if value is not None:
            data[key] = dict(value) if isinstance(value, dict) else value
    return data


def schedule_to_dict(schedule: Schedule) -> dict[str, Any]:
    """Plain-data form of a schedule, safe for ``json.dump`` and ``yaml.safe_dump``."""
    return {
        "timePoints": [{"id": tp.id, "name": tp.name, "sequence": tp.sequence} for tp in schedule.time_points],
        "serviceBands": [_band_to_dict(band) for band in schedule.service_bands],
        "trips": [trip_to_dict(trip) for trip in schedule.trips],
        "recoveryTemplates": {band: list(values) for band, values in schedule.recovery_templates.items()},
        "travelTimeData": [_record_to_dict(record) for record in schedule.travel_time_data],
    }


def _band_to_dict(band: ServiceBand) -> dict[str, Any]:
    data: dict[str, Any] = {"name": band.name, "color": band.color}
    if band.total_minutes is not None:
        data["totalMinutes"] = band.total_minutes
    if band.segment_times is not None:
        data["segmentTimes"] = list(band.segment_times)
    return data


def _record_to_dict(record: TravelTimeRecord) -> dict[str, Any]:
    data: dict[str, Any] = {"timePeriod": record.time_period, "percentile50": record.percentile50}
    if record.from_time_point is not None:
        data["fromTimePoint"] = record.from_time_point
    if record.to_time_point is not None:
        data["toTimePoint"] = record.to_time_point
    if record.percentile80 is not None:
        data["percentile80"] = record.percentile80
    return data


# ==================== FROM DICT ====================


def _time_value(value: Any) -> str:
    # unquoted HH:MM in YAML 1.1 loads as a base-60 integer, i.e. minutes
    if isinstance(value, int) and not isinstance(value, bool):
        return minutes_to_time(value)
    return str(value)


def _time_map(value: Any) -> dict[str, str]:
    return {str(key): _time_value(time) for key, time in (value or {}).items() if time is not None}


def _minutes_map(value: Any) -> dict[str, int]:
    return {str(key): int(minutes or 0) for key, minutes in (value or {}).items()}


def trip_from_dict(data: dict[str, Any], time_points: tuple[TimePoint, ...] = ()) -> Trip:
    trip = Trip(
        trip_number=int(data["tripNumber"]),
        block_number=int(data.get("blockNumber") or 0),
        departure_time=_time_value(data.get("departureTime") or ""),
        service_band=str(data.get("serviceBand") or "Standard Service"),
        arrival_times=_time_map(data.get("arrivalTimes")),
        departure_times=_time_map(data.get("departureTimes")),
        recovery_times=_minutes_map(data.get("recoveryTimes")),
    )
    if data.get("tripEndIndex") is not None:
        trip.trip_end_index = int(data["tripEndIndex"])
    if data.get("originalArrivalTimes") is not None:
        trip.original_arrival_times = _time_map(data["originalArrivalTimes"])
    if data.get("originalDepartureTimes") is not None:
        trip.original_departure_times = _time_map(data["originalDepartureTimes"])
    if data.get("originalRecoveryTimes") is not None:
        trip.original_recovery_times = _minutes_map(data["originalRecoveryTimes"])
    if data.get("hiddenTailRecoveryTimes") is not None:
        trip.hidden_tail_recovery_times = _minutes_map(data["hiddenTailRecoveryTimes"])

    if data.get("recoveryMinutes") is not None:
        trip.recovery_minutes = int(data["recoveryMinutes"])
    else:
        trip.recovery_minutes = sum_active_recovery(trip, time_points)
    return trip


def schedule_from_dict(data: dict[str, Any]) -> Schedule:
    """
    Build a ``Schedule`` from its plain-data form.

    Raises:
        ScheduleFormatError: If required keys are missing or values have the wrong type.
    """
    if not isinstance(data, dict):
        raise ScheduleFormatError(f"Schedule data must be a mapping, got {type(data).__name__}")

    try:
        time_points = tuple(
            TimePoint(id=str(tp["id"]), name=str(tp.get("name", tp["id"])), sequence=int(tp.get("sequence", index)))
            for index, tp in enumerate(data["timePoints"])
        )
        bands = [
            ServiceBand(
                name=str(band["name"]),
                color=band.get("color") or service_band_color(str(band["name"])),
                total_minutes=band.get("totalMinutes"),
                segment_times=band.get("segmentTimes"),
            )
            for band in data.get("serviceBands") or []
        ]
        records = [
            TravelTimeRecord(
                time_period=str(record["timePeriod"]),
                percentile50=float(record["percentile50"]),
                from_time_point=record.get("fromTimePoint"),
                to_time_point=record.get("toTimePoint"),
                percentile80=record.get("percentile80"),
            )
            for record in data.get("travelTimeData") or []
        ]
        schedule = Schedule(
            time_points=time_points,
            service_bands=bands,
            trips=[],
            recovery_templates={
                str(band): [int(v) for v in values] for band, values in (data.get("recoveryTemplates") or {}).items()
            },
            travel_time_data=records,
        )
        schedule.trips = [trip_from_dict(trip, schedule.time_points) for trip in data.get("trips") or []]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ScheduleFormatError(f"Invalid schedule data: {e}") from e

    return schedule


# ==================== FILES ====================


def load_schedule(path: str | Path) -> Schedule:
    """Read a schedule from a ``.json``, ``.yaml`` or ``.yml`` file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Schedule file not found: {path}")

    suffix = path.suffix.lower()
    try:
        with open(path, encoding="utf-8") as f:
            if suffix in JSON_SUFFIXES:
                data = json.load(f)
            elif suffix in YAML_SUFFIXES:
                data = yaml.safe_load(f)
            else:
                raise ScheduleFormatError(f"Unsupported schedule file type: {path.suffix}")
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ScheduleFormatError(f"Cannot parse {path}: {e}") from e

    schedule = schedule_from_dict(data)
    logger.debug(f"Loaded {len(schedule.trips)} trips from {path}")
    return schedule


def save_schedule(schedule: Schedule, path: str | Path) -> Path:
    """Write a schedule to ``.json`` or ``.yaml``/``.yml``; returns the path."""
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in JSON_SUFFIXES | YAML_SUFFIXES:
        raise ScheduleFormatError(f"Unsupported schedule file type: {path.suffix}")

    path.parent.mkdir(parents=True, exist_ok=True)
    data = schedule_to_dict(schedule)
    with open(path, "w", encoding="utf-8") as f:
        if suffix in JSON_SUFFIXES:
            json.dump(data, f, indent=2)
        else:
            yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)

    logger.debug(f"Saved {len(schedule.trips)} trips to {path}")
    return path
