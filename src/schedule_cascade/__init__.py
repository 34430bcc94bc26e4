"""
Schedule cascade engine.

Pure operations that keep a day of transit trips consistent under edits:
recovery-time cascades through trips and vehicle blocks, the zero-recovery
rule for a block's last trip, non-overlapping block assignment, trip
insertion/truncation/deletion with renumbering, and per-band recovery
templates. Each operation takes a ``Schedule`` snapshot and returns a new one.
"""

from .bands import PeriodExclusions, classify_service_band, determine_service_band_for_time
from .blocks import reassign_blocks_if_needed
from .cascade.recovery import apply_recovery_edit
from .cascade.tail import enforce_tail_recovery_rules
from .core import Schedule, ServiceBand, TimePoint, TravelTimeRecord, Trip
from .editor import ScheduleEditor
from .lifecycle import AddTripRequest, TripInsertMode, add_trip, delete_trip, end_trip, restore_trip
from .templates import apply_recovery_template, apply_target_recovery_percentage

__version__ = "0.1.0"

__all__ = [
    "AddTripRequest",
    "PeriodExclusions",
    "Schedule",
    "ScheduleEditor",
    "ServiceBand",
    "TimePoint",
    "TravelTimeRecord",
    "Trip",
    "TripInsertMode",
    "add_trip",
    "apply_recovery_edit",
    "apply_recovery_template",
    "apply_target_recovery_percentage",
    "classify_service_band",
    "delete_trip",
    "determine_service_band_for_time",
    "end_trip",
    "enforce_tail_recovery_rules",
    "reassign_blocks_if_needed",
    "restore_trip",
]
