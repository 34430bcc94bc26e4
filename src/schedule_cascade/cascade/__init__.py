from .ordering import finalize_schedule, renumber_trips, sort_trips_chronologically
from .recovery import RecoveryCascadeEngine, apply_recovery_edit
from .tail import enforce_tail_recovery_rules

__all__ = ["RecoveryCascadeEngine",
           "apply_recovery_edit",
           "enforce_tail_recovery_rules",
           "finalize_schedule",
           "renumber_trips",
           "sort_trips_chronologically"]
