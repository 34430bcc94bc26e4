"""
Per-band recovery templates.

A template is a list of recovery minutes per timepoint index for one service
band. Templates can be edited cell by cell, broadcast from a master template,
or derived from a target recovery percentage, and then applied to every trip
of the band. Applying a template runs the same cascade as editing each cell by
hand.
"""

import logging

from schedule_cascade.cascade.recovery import RecoveryCascadeEngine
from schedule_cascade.config.config_manager import EngineConfig
from schedule_cascade.core.models import BAND_ORDER, Schedule
from schedule_cascade.core.time_arithmetic import round_half_up

logger = logging.getLogger(__name__)

DEFAULT_RECOVERY_TEMPLATES = {
    "Fastest Service": [0, 1, 1, 2, 3],
    "Fast Service": [0, 1, 2, 2, 4],
    "Standard Service": [0, 2, 2, 3, 5],
    "Slow Service": [0, 2, 3, 3, 6],
    "Slowest Service": [0, 3, 3, 4, 7],
}


def fit_template(template: list[int], n_time_points: int) -> list[int]:
    """
    Trim or extend (repeating the last value) a template to ``n_time_points``.

    The first cell is always 0: a trip leaves its first timepoint when the
    previous trip of its block ends there.
    """
    values = [int(v) for v in template][:n_time_points]
    if not values:
        return [0] * n_time_points
    values.extend([values[-1]] * (n_time_points - len(values)))
    values[0] = 0
    return values


def update_template_cell(schedule: Schedule, band: str, index: int, minutes: int) -> Schedule:
    """
    Set one cell of a band's template. Trips are not changed.

    Raises:
        ValueError: On negative minutes or non-zero minutes at index 0.
    """
    if minutes < 0:
        raise ValueError(f"Recovery minutes must be non-negative, got {minutes}")
    n_time_points = len(schedule.time_points)
    if not 0 <= index < n_time_points:
        logger.warning(f"⚠️ Template index {index} outside 0..{n_time_points - 1}, ignored")
        return schedule
    if index == 0 and minutes:
        raise ValueError("Recovery at the first timepoint is fixed at 0")

    template = fit_template(schedule.recovery_templates.get(band, []), n_time_points)
    if template[index] == minutes and band in schedule.recovery_templates:
        return schedule
    template[index] = int(minutes)

    updated = schedule.with_trips(schedule.trips)
    updated.recovery_templates[band] = template
    logger.debug(f"Template {band}[{index}] = {minutes}")
    return updated


def broadcast_master_template(schedule: Schedule, master: list[int]) -> Schedule:
    """Copy one template over the template of every band."""
    n_time_points = len(schedule.time_points)
    template = fit_template(master, n_time_points)

    bands = list(BAND_ORDER)
    for name in list(schedule.recovery_templates) + [band.name for band in schedule.service_bands]:
        if name not in bands:
            bands.append(name)

    updated = schedule.with_trips(schedule.trips)
    for band in bands:
        updated.recovery_templates[band] = list(template)

    logger.info(f"📋 Master template {template} copied to {len(bands)} bands")
    return updated


def derive_template_from_percentage(travel_minutes: float, percentage: float, n_time_points: int) -> list[int]:
    """
    Spread a target recovery share of the travel time over the timepoints.

    ``round(travel * pct / 100)`` minutes are divided evenly over every
    timepoint but the first (which always gets 0); the remainder goes to the
    last timepoint.

    Example:
        >>> derive_template_from_percentage(40, 20, 5)
        [0, 2, 2, 2, 2]
    """
    if percentage < 0:
        raise ValueError(f"Recovery percentage must be non-negative, got {percentage}")
    if n_time_points <= 1:
        return [0] * n_time_points

    total = round_half_up(travel_minutes * percentage / 100)
    slots = n_time_points - 1
    each, remainder = divmod(total, slots)

    template = [0] + [each] * slots
    template[-1] += remainder
    return template


def _band_travel_minutes(schedule: Schedule, band: str) -> float | None:
    service_band = schedule.band(band)
    if service_band is not None and service_band.total_minutes:
        return float(service_band.total_minutes)
    if service_band is not None and service_band.segment_times:
        return float(sum(service_band.segment_times))
    return None


def apply_target_recovery_percentage(
    schedule: Schedule,
    band: str,
    percentage: float,
    travel_minutes: float | None = None,
    apply_to_trips: bool = False,
    config: EngineConfig | None = None,
) -> Schedule:
    """
    Derive a band's template from a recovery percentage.

    Args:
        schedule: Current snapshot
        band: Band whose template is replaced
        percentage: Target recovery as a percentage of travel time
        travel_minutes: Travel time of the band; defaults to the band's
            ``total_minutes`` (or the sum of its segment times)
        apply_to_trips: Also apply the new template to the band's trips
        config: Engine configuration used when applying

    Raises:
        ValueError: If no travel time is given or known for the band.
    """
    if travel_minutes is None:
        travel_minutes = _band_travel_minutes(schedule, band)
    if travel_minutes is None:
        raise ValueError(f"No travel time known for band {band!r}; pass travel_minutes")

    template = derive_template_from_percentage(travel_minutes, percentage, len(schedule.time_points))
    updated = schedule.with_trips(schedule.trips)
    updated.recovery_templates[band] = template
    logger.info(f"🎯 {band}: {percentage}% of {travel_minutes:g} min -> {sum(template)} min recovery {template}")

    if apply_to_trips:
        return apply_recovery_template(updated, band, config)
    return updated


def apply_recovery_template(
    schedule: Schedule,
    band: str,
    config: EngineConfig | None = None,
    period_band_map: dict[int, str] | None = None,
) -> Schedule:
    """
    Rewrite the recovery of every trip in ``band`` to the band's template.

    Trips are processed chronologically and each cell goes through the same
    within-trip and block cascade as a manual edit; the closing pass runs once.

    Returns:
        New finalized snapshot, or ``schedule`` when nothing changed.
    """
    if band not in schedule.recovery_templates:
        logger.warning(f"⚠️ No recovery template for band {band!r}, nothing applied")
        return schedule

    time_points = schedule.time_points
    template = fit_template(schedule.recovery_templates[band], len(time_points))
    trip_numbers = [trip.trip_number for trip in schedule.trips if trip.service_band == band]
    if not trip_numbers:
        logger.info(f"No trips in band {band!r}")
        return schedule

    engine = RecoveryCascadeEngine(schedule, config, period_band_map)
    for trip_number in trip_numbers:
        trip = next(t for t in engine.trips if t.trip_number == trip_number)
        last_index = trip.last_active_index(len(time_points))
        for index in range(1, last_index + 1):
            engine.edit(trip_number, time_points[index].id, template[index])

    logger.info(f"📋 Applied {band} template {template} to {len(trip_numbers)} trip(s)")
    return engine.result()


def extract_recovery_templates(schedule: Schedule) -> dict[str, list[int]]:
    """
    Read templates back from the trips: the first trip of each band wins.

    A trip that ends its block contributes its stashed values.
    """
    templates: dict[str, list[int]] = {}
    for trip in schedule.trips:
        if trip.service_band in templates:
            continue
        stash = trip.hidden_tail_recovery_times or {}
        templates[trip.service_band] = [
            int(stash.get(tp.id, trip.recovery_at(tp.id))) for tp in schedule.time_points
        ]
    return templates
