"""
Configuration data classes and management for the schedule cascade engine.

This module defines structured configuration classes for every tunable part
of the engine and a manager that loads and validates them from YAML or from a
plain dictionary.

The configuration system covers:
- Cascade guard limits (iteration count and wall-clock budget per block)
- Tail recovery rule scope
- Defaults used when new trips are built (segment travel time, band)
- Service band classification (excluded analysis periods)
- Bulk trip generation from block configurations
- Logging destinations and levels

Example YAML Configuration:
```yaml
cascade:
  max_iterations: 100
  max_seconds: 5.0
tail:
  min_block_trips: 2
trips:
  default_segment_minutes: 10
  default_service_band: "Standard Service"
classifier:
  excluded_periods: ["07:00 - 07:30"]
generation:
  first_trip_time: "07:00"
  last_trip_time: "22:00"
  cycle_time_minutes: 60
  automate_block_start_times: false
logging:
  log_dir: "logs"
  console_level: "INFO"
```

Usage:
```python
config_manager = ScheduleConfigManager('engine.yaml')
engine_config = config_manager.get_engine_config()
schedule = apply_recovery_edit(schedule, 3, "mall", 5, config=engine_config)
```
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from schedule_cascade.bands.classifier import PeriodExclusions
from schedule_cascade.core.time_arithmetic import time_to_minutes

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


@dataclass
class CascadeConfig:
    """
    Guard limits for recovery cascades.

    A cascade walks the trips of one block after the edited trip. These limits
    only protect against pathological or cyclic block data; a normal block
    never comes close to them.

    Attributes:
        max_iterations: Maximum number of later trips shifted per block
            - Exceeding it aborts the rest of that block's propagation
            - Default 100 comfortably covers a full service day

        max_seconds: Wall-clock budget per block in seconds
            - Measured with a monotonic clock from the start of the block walk
            - Default 5.0
    """

    max_iterations: int = 100
    max_seconds: float = 5.0

    def __post_init__(self):
        """Validate cascade guard limits."""
        if self.max_iterations < 1:
            raise ValueError("Cascade max_iterations must be at least 1")
        if self.max_seconds <= 0:
            raise ValueError("Cascade max_seconds must be positive")


@dataclass
class TailRecoveryConfig:
    """
    Scope of the "last trip in a block carries no recovery" rule.

    Attributes:
        min_block_trips: Smallest block size the rule applies to.
            - 2 (default): a block made of a single trip keeps its recovery
            - 1: every block's last trip is zeroed, single-trip blocks included
    """

    min_block_trips: int = 2

    def __post_init__(self):
        if self.min_block_trips < 1:
            raise ValueError("Tail rule min_block_trips must be at least 1")


@dataclass
class TripDefaultsConfig:
    """Defaults used when the lifecycle manager builds a new trip."""

    default_segment_minutes: float = 10.0
    default_service_band: str = "Standard Service"

    def __post_init__(self):
        if self.default_segment_minutes <= 0:
            raise ValueError("Default segment travel time must be positive")


@dataclass
class ClassifierConfig:
    """
    Service band classification options.

    Attributes:
        excluded_periods: Analysis periods removed by the user (e.g. outliers).
            Labels such as ``"07:00 - 07:30"``; these periods are skipped when
            period totals and percentile thresholds are computed.
    """

    excluded_periods: list[str] = field(default_factory=list)

    def exclusions(self) -> PeriodExclusions:
        return PeriodExclusions.from_labels(self.excluded_periods)


@dataclass
class GenerationConfig:
    """
    Bulk trip generation from block configurations.

    Attributes:
        first_trip_time: No trip departs before this time
        last_trip_time: No trip departs after this time
        cycle_time_minutes: Minutes between consecutive departures of one block.
            Recovery at the final timepoint fills the gap between the band's
            travel time and the cycle time.
        automate_block_start_times: Stagger block starts evenly over the cycle
            (block ``i`` starts ``i * round(cycle / n_blocks)`` after block 1)
        max_trips_per_block: Safety limit per block
        max_total_trips: Safety limit for the whole schedule
    """

    first_trip_time: str = "07:00"
    last_trip_time: str = "22:00"
    cycle_time_minutes: int = 60
    automate_block_start_times: bool = False
    max_trips_per_block: int = 50
    max_total_trips: int = 500

    def __post_init__(self):
        """Validate generation parameters."""
        if self.cycle_time_minutes <= 0:
            raise ValueError("Cycle time must be greater than 0 minutes")

        first = time_to_minutes(self.first_trip_time)
        last = time_to_minutes(self.last_trip_time)
        if first is None or last is None:
            raise ValueError("First and last trip times must be valid HH:MM values")
        if first >= last:
            raise ValueError("First trip time must be earlier than last trip time")

        if self.max_trips_per_block < 1 or self.max_total_trips < 1:
            raise ValueError("Trip safety limits must be positive")


@dataclass
class LoggingConfig:
    """Logging destinations and levels used by the CLI and scripts."""

    log_dir: str = "logs"
    log_file: str = "schedule_cascade.log"
    console_level: str = "INFO"
    file_level: str = "DEBUG"

    def __post_init__(self):
        for level in (self.console_level, self.file_level):
            if level.upper() not in VALID_LOG_LEVELS:
                raise ValueError(f"Log level must be one of {VALID_LOG_LEVELS}")


@dataclass
class EngineConfig:
    """All engine settings in one object, passed to every operation."""

    cascade: CascadeConfig = field(default_factory=CascadeConfig)
    tail: TailRecoveryConfig = field(default_factory=TailRecoveryConfig)
    trips: TripDefaultsConfig = field(default_factory=TripDefaultsConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


class ScheduleConfigManager:
    """
    Configuration manager for the schedule cascade engine.

    Loads a YAML file (or a dictionary), validates the section layout and builds
    the structured configuration objects. Every section is optional; missing
    sections and keys fall back to the dataclass defaults.

    Configuration Structure:
        ```yaml
        cascade: {...}      # Guard limits
        tail: {...}         # Tail recovery rule scope
        trips: {...}        # New-trip defaults
        classifier: {...}   # Band classification options
        generation: {...}   # Bulk trip generation
        logging: {...}      # Log destinations
        ```

    Usage Pattern:
        ```python
        config_manager = ScheduleConfigManager('engine.yaml')
        cascade_config = config_manager.get_cascade_config()
        editor = ScheduleEditor(schedule, config=config_manager.get_engine_config())
        ```
    """

    SECTIONS = ["cascade", "tail", "trips", "classifier", "generation", "logging"]

    def __init__(self, config_path: str | None = None, config_dict: dict | None = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to YAML configuration file
            config_dict: Configuration dictionary (alternative to file)

        Raises:
            FileNotFoundError: If config_path doesn't exist
            ValueError: If both or neither config sources are provided
            yaml.YAMLError: If YAML file is malformed
            ValueError: If configuration validation fails
        """
        if config_path and config_dict is not None:
            raise ValueError("Provide either config_path or config_dict, not both")

        if not config_path and config_dict is None:
            raise ValueError(
                "Configuration is required. Provide either:\n"
                "  - config_path: Path to YAML configuration file\n"
                "  - config_dict: Configuration dictionary\n"
                "Example: ScheduleConfigManager('engine.yaml')"
            )

        if config_path:
            self.config = self._load_yaml_config(config_path)
            logger.info("📋 Using loaded configuration file")
        else:
            self.config = config_dict
            logger.info("📋 Using provided configuration dictionary")

        self._validate_config()
        self._setup_structured_configs()

    def _load_yaml_config(self, config_path: str) -> dict[str, Any]:
        """Load configuration from YAML file with error handling."""
        config_file = Path(config_path)

        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file) as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in {config_path}: {e}")

        if config is None:
            config = {}
        if not isinstance(config, dict):
            raise ValueError(f"Configuration must be a dictionary, got {type(config)}")

        logger.info(f"📂 Loaded configuration from {config_path}")
        return config

    def _validate_config(self):
        """Validate configuration structure."""
        if not isinstance(self.config, dict):
            raise ValueError(f"Configuration must be a dictionary, got {type(self.config)}")

        for section, values in self.config.items():
            if section not in self.SECTIONS:
                raise ValueError(f"Unknown configuration section '{section}', expected one of {self.SECTIONS}")
            if values is not None and not isinstance(values, dict):
                raise ValueError(f"Configuration section '{section}' must be a mapping")

        excluded = self._section("classifier").get("excluded_periods", [])
        if not isinstance(excluded, list):
            raise ValueError("classifier.excluded_periods must be a list of period labels")

    def _section(self, name: str) -> dict[str, Any]:
        return self.config.get(name) or {}

    def _setup_structured_configs(self):
        """Setup structured configuration objects with validation."""
        cascade = self._section("cascade")
        self.cascade_config = CascadeConfig(
            max_iterations=cascade.get("max_iterations", 100),
            max_seconds=cascade.get("max_seconds", 5.0),
        )

        tail = self._section("tail")
        self.tail_config = TailRecoveryConfig(min_block_trips=tail.get("min_block_trips", 2))

        trips = self._section("trips")
        self.trip_defaults_config = TripDefaultsConfig(
            default_segment_minutes=trips.get("default_segment_minutes", 10.0),
            default_service_band=trips.get("default_service_band", "Standard Service"),
        )

        classifier = self._section("classifier")
        self.classifier_config = ClassifierConfig(
            excluded_periods=list(classifier.get("excluded_periods", [])),
        )

        generation = self._section("generation")
        self.generation_config = GenerationConfig(
            first_trip_time=generation.get("first_trip_time", "07:00"),
            last_trip_time=generation.get("last_trip_time", "22:00"),
            cycle_time_minutes=generation.get("cycle_time_minutes", 60),
            automate_block_start_times=generation.get("automate_block_start_times", False),
            max_trips_per_block=generation.get("max_trips_per_block", 50),
            max_total_trips=generation.get("max_total_trips", 500),
        )

        log_cfg = self._section("logging")
        self.logging_config = LoggingConfig(
            log_dir=log_cfg.get("log_dir", "logs"),
            log_file=log_cfg.get("log_file", "schedule_cascade.log"),
            console_level=log_cfg.get("console_level", "INFO"),
            file_level=log_cfg.get("file_level", "DEBUG"),
        )

    def get_cascade_config(self) -> CascadeConfig:
        """Get cascade guard configuration."""
        return self.cascade_config

    def get_tail_config(self) -> TailRecoveryConfig:
        """Get tail recovery rule configuration."""
        return self.tail_config

    def get_trip_defaults_config(self) -> TripDefaultsConfig:
        """Get new-trip defaults."""
        return self.trip_defaults_config

    def get_classifier_config(self) -> ClassifierConfig:
        """Get service band classification configuration."""
        return self.classifier_config

    def get_generation_config(self) -> GenerationConfig:
        """Get bulk trip generation configuration."""
        return self.generation_config

    def get_logging_config(self) -> LoggingConfig:
        """Get logging configuration."""
        return self.logging_config

    def get_engine_config(self) -> EngineConfig:
        """Get every section bundled as one EngineConfig."""
        return EngineConfig(
            cascade=self.cascade_config,
            tail=self.tail_config,
            trips=self.trip_defaults_config,
            classifier=self.classifier_config,
            generation=self.generation_config,
            logging=self.logging_config,
        )

    def get_full_config(self) -> dict[str, Any]:
        """Get complete configuration dictionary."""
        return self.config.copy()

    def print_summary(self):
        """Print configuration summary for verification."""
        print("\n📋 SCHEDULE ENGINE CONFIGURATION SUMMARY:")

        print("   🔁 Cascade:")
        print(f"      Max iterations per block: {self.cascade_config.max_iterations}")
        print(f"      Max seconds per block: {self.cascade_config.max_seconds}")

        print("   🛑 Tail recovery rule:")
        print(f"      Applies to blocks with >= {self.tail_config.min_block_trips} trips")

        print("   🚌 New trips:")
        print(f"      Default segment travel: {self.trip_defaults_config.default_segment_minutes} min")
        print(f"      Default band: {self.trip_defaults_config.default_service_band}")

        print("   🎨 Classifier:")
        print(f"      Excluded periods: {len(self.classifier_config.excluded_periods)}")

        print("   🗓️ Generation:")
        print(
            f"      Service span: {self.generation_config.first_trip_time}"
            f" - {self.generation_config.last_trip_time}"
        )
        print(f"      Cycle time: {self.generation_config.cycle_time_minutes} min")
        if self.generation_config.automate_block_start_times:
            print("      Block start times: automated")
