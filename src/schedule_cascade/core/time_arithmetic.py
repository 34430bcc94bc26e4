"""
Time arithmetic for schedule editing.

All schedule times are stored as ``"HH:MM"`` strings. Hours may run past 23
for service after midnight (``"24:15"``, ``"25:40"``), following the GTFS
convention, so conversions never wrap at 24 hours.

Malformed input never raises here. ``time_to_minutes`` returns ``None`` as the
invalid sentinel and logs a warning; callers skip the derivation that needed
the value. This keeps partially-bad historical data editable.
"""

import logging
import re

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60
PERIOD_MINUTES = 30

_TIME_PATTERN = re.compile(r"^\s*(\d{1,3}):(\d{1,2})(?::(\d{1,2}))?\s*$")
_EMPTY_MARKERS = {"", "-", "--"}


def time_to_minutes(value: str | None) -> int | None:
    """
    Convert ``"HH:MM"`` (or ``"HH:MM:SS"``) to minutes after midnight.

    Args:
        value: Time string. Seconds are accepted and dropped.

    Returns:
        Minutes after midnight, or ``None`` when the string is empty or malformed.
    """
    if value is None or not isinstance(value, str) or value.strip() in _EMPTY_MARKERS:
        return None

    match = _TIME_PATTERN.match(value)
    if not match:
        logger.warning(f"⚠️ Malformed time value {value!r}, skipping")
        return None

    hours = int(match.group(1))
    minutes = int(match.group(2))
    if minutes > 59:
        logger.warning(f"⚠️ Minutes out of range in time value {value!r}, skipping")
        return None

    return hours * 60 + minutes


def minutes_to_time(minutes: int | float) -> str:
    """Format minutes after midnight as ``"HH:MM"`` (hours are not wrapped)."""
    if minutes is None or minutes != minutes:  # NaN check
        logger.warning("⚠️ Cannot format an invalid minute value, using 00:00")
        return "00:00"

    total = int(round(minutes))
    if total < 0:
        logger.warning(f"⚠️ Negative time of {total} minutes clamped to 00:00")
        total = 0

    hours, mins = divmod(total, 60)
    return f"{hours:02d}:{mins:02d}"


def add_minutes(value: str, delta: int) -> str:
    """
    Add ``delta`` minutes to a time string.

    Malformed input is returned unchanged so a single bad cell does not wipe
    out the value the user can still see and fix.
    """
    base = time_to_minutes(value)
    if base is None:
        return value
    return minutes_to_time(base + delta)


def time_difference(start: str, end: str) -> int | None:
    """Minutes from ``start`` to ``end``; ``None`` if either side is invalid."""
    start_minutes = time_to_minutes(start)
    end_minutes = time_to_minutes(end)
    if start_minutes is None or end_minutes is None:
        return None
    return end_minutes - start_minutes


def period_bucket(minutes: int) -> int:
    """Index of the 30-minute window that contains ``minutes``."""
    return int(minutes) // PERIOD_MINUTES


def period_label(minutes: int) -> str:
    """Label of the 30-minute window containing ``minutes``, e.g. ``"07:00 - 07:30"``."""
    start = period_bucket(minutes) * PERIOD_MINUTES
    return f"{minutes_to_time(start)} - {minutes_to_time(start + PERIOD_MINUTES)}"


def parse_period(label: str) -> tuple[int, int] | None:
    """
    Parse a time-period label into ``(start, end)`` minutes, end exclusive.

    Both ``"07:00 - 07:30"`` and the inclusive ``"07:00 - 07:29"`` forms found
    in exported analysis tables are accepted; the latter is widened by one
    minute so that ``start <= t < end`` holds for every minute in the window.
    """
    if not isinstance(label, str) or "-" not in label:
        logger.warning(f"⚠️ Malformed time period label {label!r}")
        return None

    start_text, _, end_text = label.partition(" - ")
    if not end_text:
        start_text, _, end_text = label.partition("-")

    start = time_to_minutes(start_text)
    end = time_to_minutes(end_text)
    if start is None or end is None:
        return None

    if end < start:
        end += MINUTES_PER_DAY
    if (end - start) % PERIOD_MINUTES == PERIOD_MINUTES - 1:
        end += 1
    return start, end


def unwrap_overnight(values: list[int]) -> list[int]:
    """
    Make a sequence of stop times monotone across midnight.

    A drop of half a day or more between consecutive values is read as the
    clock rolling over (``23:50`` followed by ``00:10``), and whole days are
    added until the sequence is non-decreasing again. Smaller drops are left
    alone; they are data errors, not rollovers.
    """
    unwrapped: list[int] = []
    last_seen: int | None = None

    for minutes in values:
        if last_seen is not None and minutes < last_seen and last_seen - minutes >= MINUTES_PER_DAY // 2:
            while minutes < last_seen:
                minutes += MINUTES_PER_DAY
        unwrapped.append(minutes)
        last_seen = minutes

    return unwrapped


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (``2.5 -> 3``)."""
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)
