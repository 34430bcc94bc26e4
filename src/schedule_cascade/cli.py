"""Console script for schedule_cascade."""

from collections.abc import Callable
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from schedule_cascade.analysis.statistics import block_summary, schedule_summary
from schedule_cascade.analysis.validation import validate_schedule
from schedule_cascade.config.config_manager import EngineConfig, ScheduleConfigManager
from schedule_cascade.core.models import Schedule
from schedule_cascade.editor import ScheduleEditor
from schedule_cascade.exceptions import ScheduleCascadeError
from schedule_cascade.lifecycle.trips import AddTripRequest, TripInsertMode
from schedule_cascade.logging import setup_logger_from_config
from schedule_cascade.persistence.serialization import load_schedule, save_schedule

app = typer.Typer(help="Keep a day of transit trips consistent under edits.")
console = Console()

ConfigOption = typer.Option(None, "--config", "-c", help="Engine configuration YAML")
OutputOption = typer.Option(None, "--output", "-o", help="Where to write the result (default: overwrite input)")
DryRunOption = typer.Option(False, "--dry-run", help="Report the result without writing it")
LogFileOption = typer.Option(False, "--log-file", help="Also write logs to the configured log directory")


def _load_config(config_path: Path | None) -> EngineConfig:
    if config_path is None:
        return EngineConfig()
    return ScheduleConfigManager(config_path=str(config_path)).get_engine_config()


def _open_editor(schedule_path: Path, config_path: Path | None, log_file: bool) -> ScheduleEditor:
    try:
        config = _load_config(config_path)
        setup_logger_from_config(config.logging, to_file=log_file)
        return ScheduleEditor(load_schedule(schedule_path), config=config)
    except (FileNotFoundError, ValueError, ScheduleCascadeError) as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=1)


def _run(
    schedule_path: Path,
    config_path: Path | None,
    output: Path | None,
    dry_run: bool,
    log_file: bool,
    operation: Callable[[ScheduleEditor], Schedule],
):
    editor = _open_editor(schedule_path, config_path, log_file)
    try:
        operation(editor)
    except (ValueError, ScheduleCascadeError) as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=1)

    if editor.commit_count == 0:
        console.print("ℹ️ Nothing changed")
        return

    _print_violations(editor)
    if dry_run:
        console.print(f"🔍 Dry run: {len(editor.schedule.trips)} trips, nothing written")
        return

    target = save_schedule(editor.schedule, output or schedule_path)
    console.print(f"✅ Wrote {len(editor.schedule.trips)} trips to {target}")


def _print_violations(editor: ScheduleEditor) -> int:
    violations = editor.validate()
    if not violations:
        return 0

    table = Table(title=f"{len(violations)} invariant violation(s)")
    table.add_column("Kind")
    table.add_column("Trip", justify="right")
    table.add_column("Block", justify="right")
    table.add_column("Detail")
    for violation in violations:
        table.add_row(
            violation.kind,
            "" if violation.trip_number is None else str(violation.trip_number),
            "" if violation.block_number is None else str(violation.block_number),
            violation.message,
        )
    console.print(table)
    return len(violations)


# ==================== QUERIES ====================


@app.command()
def validate(schedule_path: Path, config_path: Path = ConfigOption):
    """Check a schedule against the consistency invariants."""
    editor = _open_editor(schedule_path, config_path, log_file=False)
    count = _print_violations(editor)
    if count:
        raise typer.Exit(code=1)
    console.print(f"✅ {len(editor.schedule.trips)} trips, no violations")


@app.command()
def summary(
    schedule_path: Path,
    blocks: bool = typer.Option(False, "--blocks", help="Show one row per block"),
):
    """Print trip, travel and recovery totals."""
    try:
        schedule = load_schedule(schedule_path)
    except (FileNotFoundError, ScheduleCascadeError) as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=1)

    table = Table(title="Schedule summary")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for key, value in schedule_summary(schedule).to_dict().items():
        table.add_row(key, str(value))
    console.print(table)

    if blocks:
        frame = block_summary(schedule)
        block_table = Table(title="Blocks")
        for column in frame.columns:
            block_table.add_column(column)
        for row in frame.itertuples(index=False):
            block_table.add_row(*(str(value) for value in row))
        console.print(block_table)


# ==================== OPERATIONS ====================


@app.command()
def enforce(
    schedule_path: Path,
    config_path: Path = ConfigOption,
    output: Path = OutputOption,
    dry_run: bool = DryRunOption,
    log_file: bool = LogFileOption,
):
    """Apply the tail recovery rule to every block."""
    _run(schedule_path, config_path, output, dry_run, log_file, lambda e: e.enforce_tail_recovery_rules())


@app.command("reassign-blocks")
def reassign_blocks(
    schedule_path: Path,
    config_path: Path = ConfigOption,
    output: Path = OutputOption,
    dry_run: bool = DryRunOption,
    log_file: bool = LogFileOption,
):
    """Re-partition trips into non-overlapping blocks when the numbers look unusable."""
    _run(schedule_path, config_path, output, dry_run, log_file, lambda e: e.reassign_blocks_if_needed())


@app.command("edit-recovery")
def edit_recovery(
    schedule_path: Path,
    trip_number: int,
    time_point_id: str,
    minutes: int,
    config_path: Path = ConfigOption,
    output: Path = OutputOption,
    dry_run: bool = DryRunOption,
    log_file: bool = LogFileOption,
):
    """Set one recovery value and cascade it through the trip and its block."""
    _run(
        schedule_path,
        config_path,
        output,
        dry_run,
        log_file,
        lambda e: e.apply_recovery_edit(trip_number, time_point_id, minutes),
    )


@app.command("add-trip")
def add_trip(
    schedule_path: Path,
    mode: TripInsertMode = typer.Option(TripInsertMode.AFTER_LAST, "--mode"),
    block_number: int = typer.Option(None, "--block"),
    anchor_trip_number: int = typer.Option(None, "--anchor"),
    start_time: str = typer.Option(None, "--start"),
    end_time: str = typer.Option(None, "--end"),
    service_band: str = typer.Option(None, "--band"),
    config_path: Path = ConfigOption,
    output: Path = OutputOption,
    dry_run: bool = DryRunOption,
    log_file: bool = LogFileOption,
):
    """Add a trip after a block, before a block, or as a new mid-route vehicle."""
    request = AddTripRequest(
        mode=mode,
        block_number=block_number,
        anchor_trip_number=anchor_trip_number,
        start_time=start_time,
        end_time=end_time,
        service_band=service_band,
    )
    _run(schedule_path, config_path, output, dry_run, log_file, lambda e: e.add_trip(request))


@app.command("end-trip")
def end_trip(
    schedule_path: Path,
    trip_number: int,
    time_point_index: int,
    config_path: Path = ConfigOption,
    output: Path = OutputOption,
    dry_run: bool = DryRunOption,
    log_file: bool = LogFileOption,
):
    """Truncate a trip at a timepoint index; later trips of its block are removed."""
    _run(
        schedule_path,
        config_path,
        output,
        dry_run,
        log_file,
        lambda e: e.end_trip(trip_number, time_point_index),
    )


@app.command("restore-trip")
def restore_trip(
    schedule_path: Path,
    trip_number: int,
    config_path: Path = ConfigOption,
    output: Path = OutputOption,
    dry_run: bool = DryRunOption,
    log_file: bool = LogFileOption,
):
    """Undo a truncation of one trip."""
    _run(schedule_path, config_path, output, dry_run, log_file, lambda e: e.restore_trip(trip_number))


@app.command("delete-trip")
def delete_trip(
    schedule_path: Path,
    trip_number: int,
    config_path: Path = ConfigOption,
    output: Path = OutputOption,
    dry_run: bool = DryRunOption,
    log_file: bool = LogFileOption,
):
    """Delete a trip and renumber the rest."""
    _run(schedule_path, config_path, output, dry_run, log_file, lambda e: e.delete_trip(trip_number))


@app.command("apply-template")
def apply_template(
    schedule_path: Path,
    band: str,
    percentage: float = typer.Option(None, "--percentage", help="Derive the template from a recovery target first"),
    travel_minutes: float = typer.Option(None, "--travel-minutes", help="Travel time used with --percentage"),
    config_path: Path = ConfigOption,
    output: Path = OutputOption,
    dry_run: bool = DryRunOption,
    log_file: bool = LogFileOption,
):
    """Apply a band's recovery template to all of its trips."""

    def operation(editor: ScheduleEditor) -> Schedule:
        if percentage is not None:
            return editor.apply_target_recovery_percentage(band, percentage, travel_minutes, apply_to_trips=True)
        return editor.apply_recovery_template(band)

    _run(schedule_path, config_path, output, dry_run, log_file, operation)


if __name__ == "__main__":
    app()
