# Apply a list of edits to a schedule in one run
# Run from repo root:  python3 scripts/run.py --plan configs/edit_plan.yaml
#
# Plan format:
#   schedule: data/schedule.json
#   output: data/schedule_edited.json     # optional, defaults to schedule
#   config: configs/engine.yaml           # optional engine configuration
#   operations:
#     - {op: edit_recovery, trip: 3, time_point: mall, minutes: 5}
#     - {op: add_trip, mode: after_last, block: 2}
#     - {op: end_trip, trip: 7, time_point_index: 2}
#     - {op: apply_template, band: "Fast Service", percentage: 15}

import argparse
import logging
import sys
from pathlib import Path

import yaml

# put src on path
project_root = Path(__file__).resolve().parent.parent
src = project_root / "src"
if str(src) not in sys.path:
    sys.path.insert(0, str(src))

from schedule_cascade.config.config_manager import EngineConfig, ScheduleConfigManager
from schedule_cascade.editor import ScheduleEditor
from schedule_cascade.lifecycle.trips import AddTripRequest
from schedule_cascade.logging import setup_logger_from_config
from schedule_cascade.persistence.serialization import load_schedule, save_schedule
from schedule_cascade.persistence.stores import InMemoryScheduleStore


def load_plan(path: str) -> dict:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Plan file not found: {path}")
    with open(path) as f:
        plan = yaml.safe_load(f) or {}
    if "schedule" not in plan:
        raise ValueError("Plan must name a 'schedule' file")
    return plan


def apply_operation(editor: ScheduleEditor, step: dict) -> None:
    op = step.get("op")
    if op == "edit_recovery":
        editor.apply_recovery_edit(step["trip"], step["time_point"], step["minutes"])
    elif op == "add_trip":
        editor.add_trip(
            AddTripRequest(
                mode=step.get("mode", "after_last"),
                block_number=step.get("block"),
                anchor_trip_number=step.get("anchor"),
                start_time=step.get("start"),
                end_time=step.get("end"),
                service_band=step.get("band"),
            )
        )
    elif op == "end_trip":
        editor.end_trip(step["trip"], step["time_point_index"])
    elif op == "restore_trip":
        editor.restore_trip(step["trip"])
    elif op == "delete_trip":
        editor.delete_trip(step["trip"])
    elif op == "apply_template":
        if "percentage" in step:
            editor.apply_target_recovery_percentage(
                step["band"], step["percentage"], step.get("travel_minutes"), apply_to_trips=True
            )
        else:
            editor.apply_recovery_template(step["band"])
    elif op == "reassign_blocks":
        editor.reassign_blocks_if_needed()
    elif op == "enforce":
        editor.enforce_tail_recovery_rules()
    else:
        raise ValueError(f"Unknown operation {op!r}")


def main():
    parser = argparse.ArgumentParser(description="Apply a plan of schedule edits")
    parser.add_argument("--plan", required=True, help="Path to the edit plan YAML")
    parser.add_argument("--dry-run", action="store_true", help="Do not write the result")
    args = parser.parse_args()

    plan = load_plan(args.plan)
    config = (
        ScheduleConfigManager(config_path=plan["config"]).get_engine_config() if plan.get("config") else EngineConfig()
    )
    setup_logger_from_config(config.logging)
    logger = logging.getLogger("schedule_cascade.scripts.run")

    store = InMemoryScheduleStore()
    editor = ScheduleEditor(load_schedule(plan["schedule"]), port=store, config=config)

    operations = plan.get("operations") or []
    for number, step in enumerate(operations, start=1):
        logger.info(f"▶️ Step {number}/{len(operations)}: {step.get('op')}")
        apply_operation(editor, step)

    violations = editor.validate()
    for violation in violations:
        logger.warning(f"⚠️ {violation.kind}: trip {violation.trip_number} block {violation.block_number}: {violation.message}")

    logger.info(f"✅ {len(store)} committed change(s), {len(violations)} violation(s)")
    if args.dry_run or not len(store):
        return

    output = save_schedule(editor.schedule, plan.get("output") or plan["schedule"])
    logger.info(f"💾 Wrote {output}")


if __name__ == "__main__":
    main()
