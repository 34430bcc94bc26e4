"""
Bulk trip generation from block configurations.

Each configured block (one vehicle) departs every ``cycle_time_minutes`` from
its start time until the last trip time. Stop times come from the service
band of each departure; whatever the cycle leaves over after the band's
travel time becomes recovery at the final timepoint, so consecutive trips of
a block chain exactly when the cycle covers the travel time.
"""

import logging
from dataclasses import dataclass

from schedule_cascade.bands.classifier import build_period_band_map, determine_service_band_for_minutes
from schedule_cascade.cascade.ordering import finalize_schedule
from schedule_cascade.config.config_manager import EngineConfig, GenerationConfig
from schedule_cascade.core.models import Schedule, ServiceBand, TimePoint, TravelTimeRecord, Trip
from schedule_cascade.core.time_arithmetic import minutes_to_time, round_half_up, time_to_minutes

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_START = "07:00"


@dataclass
class BlockConfiguration:
    """One vehicle and the time its first trip leaves."""

    block_number: int
    start_time: str = DEFAULT_BLOCK_START

    def __post_init__(self):
        if self.block_number <= 0:
            raise ValueError(f"block_number must be positive, got {self.block_number}")


def block_start_times(
    block_configurations: list[BlockConfiguration], generation: GenerationConfig
) -> list[int]:
    """
    Start minute of each block.

    With ``automate_block_start_times`` every block after the first starts
    ``i * round(cycle / n_blocks)`` minutes after the first one, spreading the
    vehicles evenly over the cycle. Starts never precede ``first_trip_time``.
    """
    first_minutes = time_to_minutes(generation.first_trip_time)
    n_blocks = len(block_configurations)
    first_block_start = time_to_minutes(block_configurations[0].start_time)
    if first_block_start is None:
        first_block_start = time_to_minutes(DEFAULT_BLOCK_START)

    starts = []
    for index, block in enumerate(block_configurations):
        if generation.automate_block_start_times and index > 0:
            headway = round_half_up(generation.cycle_time_minutes / n_blocks)
            start = first_block_start + index * headway
        else:
            start = time_to_minutes(block.start_time)
            if start is None:
                logger.warning(
                    f"⚠️ Block {block.block_number} has malformed start {block.start_time!r}, "
                    f"using {DEFAULT_BLOCK_START}"
                )
                start = time_to_minutes(DEFAULT_BLOCK_START)
        starts.append(max(start, first_minutes))
    return starts


def _build_trip(
    time_points: tuple[TimePoint, ...],
    band: ServiceBand,
    block_number: int,
    departure: int,
    cycle_minutes: int,
) -> Trip:
    arrival_times = {time_points[0].id: minutes_to_time(departure)}
    clock = float(departure)
    for tp, segment in zip(time_points[1:], band.segment_times):
        clock += float(segment)
        arrival_times[tp.id] = minutes_to_time(round_half_up(clock))

    departure_times = dict(arrival_times)
    recovery_times = {tp.id: 0 for tp in time_points}

    # the next trip of the block leaves the final stop one cycle after this one
    last_id = time_points[-1].id
    extra = 0
    if last_id in arrival_times:
        extra = max(0, departure + cycle_minutes - time_to_minutes(arrival_times[last_id]))
    if extra:
        recovery_times[last_id] = extra
        departure_times[last_id] = minutes_to_time(time_to_minutes(arrival_times[last_id]) + extra)

    return Trip(
        trip_number=0,
        block_number=block_number,
        departure_time=minutes_to_time(departure),
        service_band=band.name,
        arrival_times=arrival_times,
        departure_times=departure_times,
        recovery_times=recovery_times,
        recovery_minutes=extra,
    )


def generate_trips(
    time_points: list[TimePoint] | tuple[TimePoint, ...],
    service_bands: list[ServiceBand],
    block_configurations: list[BlockConfiguration],
    generation: GenerationConfig | None = None,
    period_band_map: dict[int, str] | None = None,
    travel_time_data: list[TravelTimeRecord] | None = None,
    recovery_templates: dict[str, list[int]] | None = None,
    config: EngineConfig | None = None,
) -> Schedule:
    """
    Generate a day of trips for the configured blocks.

    Args:
        time_points: Route timepoints
        service_bands: Bands with ``segment_times``. A departure whose band has
            no segment times is skipped before a block's first trip and ends the
            block after it, so every block stays chained
        block_configurations: Vehicles and their start times
        generation: Service span, cycle time and safety limits
        period_band_map: 30-minute bucket -> band table; built from
            ``travel_time_data`` when omitted
        travel_time_data: Analysis table stored on the schedule
        recovery_templates: Templates stored on the schedule
        config: Engine configuration for the closing pass

    Returns:
        Finalized ``Schedule`` (sorted, numbered 1..N, tail rule applied).

    Raises:
        ValueError: On an empty block configuration or fewer than two timepoints.
    """
    config = config or EngineConfig()
    generation = generation or config.generation
    if not block_configurations:
        raise ValueError("At least one block configuration is required")
    if len(time_points) < 2:
        raise ValueError("At least two timepoints are required")

    schedule = Schedule(
        time_points=tuple(time_points),
        service_bands=list(service_bands),
        trips=[],
        recovery_templates={band: list(values) for band, values in (recovery_templates or {}).items()},
        travel_time_data=list(travel_time_data or []),
    )
    ordered_points = schedule.time_points

    if period_band_map is None and schedule.travel_time_data:
        period_band_map = build_period_band_map(schedule.travel_time_data, config.classifier.exclusions())

    last_minutes = time_to_minutes(generation.last_trip_time)
    cycle = generation.cycle_time_minutes
    starts = block_start_times(block_configurations, generation)

    trips: list[Trip] = []
    skipped = 0
    for block, start in zip(block_configurations, starts):
        departure = start
        block_trips = 0
        while departure <= last_minutes:
            if block_trips >= generation.max_trips_per_block:
                logger.warning(
                    f"⚠️ Block {block.block_number} hit the limit of {generation.max_trips_per_block} trips"
                )
                break
            if len(trips) >= generation.max_total_trips:
                break

            band_name = determine_service_band_for_minutes(departure, period_band_map)
            band = schedule.band(band_name)
            if band is None or not band.segment_times:
                if block_trips:
                    logger.warning(
                        f"⚠️ Block {block.block_number} ends at {minutes_to_time(departure)}: "
                        f"{band_name} has no segment times"
                    )
                    break
                skipped += 1
                departure += cycle
                continue

            travel = sum(float(segment) for segment in band.segment_times)
            if travel > cycle:
                logger.warning(
                    f"⚠️ {band.name} takes {travel:g} min, longer than the {cycle} min cycle; "
                    f"block {block.block_number} trips will overlap"
                )

            trips.append(_build_trip(ordered_points, band, block.block_number, departure, cycle))
            block_trips += 1
            departure += cycle

        logger.debug(f"Block {block.block_number}: {block_trips} trips from {minutes_to_time(start)}")

    if len(trips) >= generation.max_total_trips:
        logger.warning(f"⚠️ Hit the limit of {generation.max_total_trips} trips in total")
    if skipped:
        logger.warning(f"⚠️ Skipped {skipped} departure(s) whose band has no segment times")

    logger.info(f"🚌 Generated {len(trips)} trips for {len(block_configurations)} blocks")
    return finalize_schedule(schedule.with_trips(trips), config)
