"""
Editor orchestrator.

``ScheduleEditor`` owns the current snapshot. Each method calls one pure
operation, commits the snapshot it returns and hands it to the persistence
port exactly once. Operations that turned out to be no-ops (the operation
returned the same snapshot object) commit nothing and save nothing.
"""

import logging

from schedule_cascade.analysis.validation import InvariantViolation, validate_schedule
from schedule_cascade.bands.classifier import build_period_band_map, classify_service_band
from schedule_cascade.blocks.assigner import reassign_blocks_if_needed
from schedule_cascade.cascade.recovery import apply_recovery_edit
from schedule_cascade.cascade.tail import enforce_tail_recovery_rules
from schedule_cascade.config.config_manager import EngineConfig
from schedule_cascade.core.models import Schedule
from schedule_cascade.lifecycle.trips import AddTripRequest, add_trip, delete_trip, end_trip, restore_trip
from schedule_cascade.persistence.stores import SchedulePersistencePort
from schedule_cascade.templates.applier import (
    apply_recovery_template,
    apply_target_recovery_percentage,
    broadcast_master_template,
    update_template_cell,
)

logger = logging.getLogger(__name__)


class ScheduleEditor:
    """
    Serializes edits against one schedule and records an undo history.

    Example:
        ```python
        store = FileScheduleStore("schedule.json")
        editor = ScheduleEditor(load_schedule("schedule.json"), port=store)
        editor.apply_recovery_edit(4, "downtown", 6)
        editor.delete_trip(9)
        editor.undo()
        ```
    """

    def __init__(
        self,
        schedule: Schedule,
        port: SchedulePersistencePort | None = None,
        config: EngineConfig | None = None,
        history_limit: int = 50,
    ):
        self.schedule = schedule
        self.port = port
        self.config = config or EngineConfig()
        self.history_limit = history_limit
        self.history: list[Schedule] = []
        self.commit_count = 0
        self._period_band_map: dict[int, str] | None = None
        self._period_band_source = None

    # ==================== COMMIT ====================

    def _commit(self, new_schedule: Schedule, action: str) -> Schedule:
        if new_schedule is self.schedule:
            logger.debug(f"{action}: no change")
            return self.schedule

        self.history.append(self.schedule)
        if len(self.history) > self.history_limit:
            self.history.pop(0)

        self.schedule = new_schedule
        self.commit_count += 1
        if self.port is not None:
            self.port.save(new_schedule)
        logger.info(f"💾 {action} ({len(new_schedule.trips)} trips)")
        return new_schedule

    def undo(self) -> bool:
        """Return to the previous snapshot; False when there is nothing to undo."""
        if not self.history:
            return False
        self.schedule = self.history.pop()
        self.commit_count += 1
        if self.port is not None:
            self.port.save(self.schedule)
        logger.info("↩️ Undo")
        return True

    @property
    def period_band_map(self) -> dict[int, str] | None:
        """Period -> band table for the current analysis data, cached per table."""
        data = self.schedule.travel_time_data
        if not data:
            return None
        if self._period_band_source != data:
            self._period_band_map = build_period_band_map(data, self.config.classifier.exclusions())
            self._period_band_source = list(data)
        return self._period_band_map

    # ==================== OPERATIONS ====================

    def apply_recovery_edit(self, trip_number: int, time_point_id: str, new_recovery_minutes: int) -> Schedule:
        new_schedule = apply_recovery_edit(
            self.schedule,
            trip_number,
            time_point_id,
            new_recovery_minutes,
            config=self.config,
            period_band_map=self.period_band_map,
        )
        return self._commit(new_schedule, f"Recovery of trip {trip_number} at {time_point_id} set to {new_recovery_minutes}")

    def add_trip(self, request: AddTripRequest) -> Schedule:
        return self._commit(add_trip(self.schedule, request, self.config), f"Added {request.mode.value} trip")

    def end_trip(self, trip_number: int, time_point_index: int) -> Schedule:
        return self._commit(
            end_trip(self.schedule, trip_number, time_point_index, self.config), f"Ended trip {trip_number}"
        )

    def restore_trip(self, trip_number: int) -> Schedule:
        return self._commit(restore_trip(self.schedule, trip_number, self.config), f"Restored trip {trip_number}")

    def delete_trip(self, trip_number: int) -> Schedule:
        return self._commit(delete_trip(self.schedule, trip_number, self.config), f"Deleted trip {trip_number}")

    def update_template_cell(self, band: str, index: int, minutes: int) -> Schedule:
        return self._commit(update_template_cell(self.schedule, band, index, minutes), f"Template {band}[{index}]")

    def broadcast_master_template(self, master: list[int]) -> Schedule:
        return self._commit(broadcast_master_template(self.schedule, master), "Master template broadcast")

    def apply_target_recovery_percentage(
        self, band: str, percentage: float, travel_minutes: float | None = None, apply_to_trips: bool = False
    ) -> Schedule:
        new_schedule = apply_target_recovery_percentage(
            self.schedule, band, percentage, travel_minutes, apply_to_trips, self.config
        )
        return self._commit(new_schedule, f"{band} recovery target {percentage}%")

    def apply_recovery_template(self, band: str) -> Schedule:
        new_schedule = apply_recovery_template(self.schedule, band, self.config, self.period_band_map)
        return self._commit(new_schedule, f"Applied {band} template")

    def reassign_blocks_if_needed(self) -> Schedule:
        return self._commit(reassign_blocks_if_needed(self.schedule, self.config), "Blocks reassigned")

    def enforce_tail_recovery_rules(self) -> Schedule:
        return self._commit(enforce_tail_recovery_rules(self.schedule, self.config), "Tail recovery enforced")

    # ==================== QUERIES ====================

    def classify_service_band(self, time: str) -> str:
        return classify_service_band(time, self.schedule.travel_time_data, self.config.classifier.exclusions())

    def validate(self) -> list[InvariantViolation]:
        return validate_schedule(self.schedule, self.config)
