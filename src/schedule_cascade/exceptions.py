"""
Exception types raised by the schedule cascade engine.

Most local problems (malformed times, unknown trip numbers, cascade runaway)
are absorbed with a log entry and a safe default. The types below are reserved
for situations where continuing would silently destroy or corrupt schedule data,
or where the caller asked for something that cannot exist.
"""


class ScheduleCascadeError(Exception):
    """Base class for all engine errors."""


class ScheduleRebuildError(ScheduleCascadeError):
    """
    Raised when a restore/rebuild needs source data that is not available.

    Example: restoring a truncated trip whose ``original*Times`` backups are
    missing. A partial restore would leave the trip with a mix of live and
    cleared times, so the operation refuses instead.
    """


class TripLifecycleError(ScheduleCascadeError, ValueError):
    """Raised when add/end parameters describe a trip that cannot be built."""


class ScheduleFormatError(ScheduleCascadeError, ValueError):
    """Raised when a serialized schedule cannot be read back into a Schedule."""
