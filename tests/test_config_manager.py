"""
Basic tests for engine configuration management.

These tests validate that the configuration system works correctly with
simple, realistic configurations. Focus on core functionality rather than
edge cases.
"""

import tempfile
from pathlib import Path

import pytest
import yaml

from schedule_cascade.config.config_manager import (
    CascadeConfig,
    ClassifierConfig,
    EngineConfig,
    GenerationConfig,
    LoggingConfig,
    ScheduleConfigManager,
    TailRecoveryConfig,
    TripDefaultsConfig,
)


class TestConfigDataClasses:
    """Test basic configuration data class creation and validation."""

    def test_cascade_config_defaults(self):
        """Test CascadeConfig creates with reasonable defaults."""
        config = CascadeConfig()

        assert config.max_iterations == 100
        assert config.max_seconds == 5.0

        print(f"✅ CascadeConfig defaults: iterations={config.max_iterations}, seconds={config.max_seconds}")

    def test_cascade_config_validation(self):
        """Test CascadeConfig validates parameters reasonably."""
        config = CascadeConfig(max_iterations=10, max_seconds=0.5)
        assert config.max_iterations == 10

        with pytest.raises(ValueError):
            CascadeConfig(max_iterations=0)
        with pytest.raises(ValueError):
            CascadeConfig(max_seconds=0)

        print("✅ CascadeConfig validation works")

    def test_other_section_validation(self):
        """Test the remaining sections reject impossible values."""
        with pytest.raises(ValueError):
            TailRecoveryConfig(min_block_trips=0)
        with pytest.raises(ValueError):
            TripDefaultsConfig(default_segment_minutes=0)
        with pytest.raises(ValueError):
            GenerationConfig(first_trip_time="22:00", last_trip_time="07:00")
        with pytest.raises(ValueError):
            GenerationConfig(first_trip_time="seven")
        with pytest.raises(ValueError):
            LoggingConfig(console_level="LOUD")

        print("✅ Section validation works")

    def test_classifier_exclusions(self):
        """Test excluded period labels become period starts."""
        config = ClassifierConfig(excluded_periods=["07:00 - 07:30", "08:00 - 08:29"])
        exclusions = config.exclusions()

        assert exclusions.excludes(420)
        assert exclusions.excludes(480)
        assert not exclusions.excludes(450)

    def test_engine_config_defaults(self):
        config = EngineConfig()

        assert config.tail.min_block_trips == 2
        assert config.trips.default_service_band == "Standard Service"
        assert config.generation.cycle_time_minutes == 60


class TestConfigManager:
    """Test ScheduleConfigManager core functionality."""

    def test_yaml_config_loading(self):
        """Test loading configuration from YAML file."""
        test_config = {
            "cascade": {"max_iterations": 25},
            "tail": {"min_block_trips": 1},
            "classifier": {"excluded_periods": ["07:00 - 07:30"]},
            "generation": {"first_trip_time": "06:00", "cycle_time_minutes": 45},
        }

        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            yaml.dump(test_config, f)
            temp_path = f.name

        try:
            manager = ScheduleConfigManager(temp_path)

            assert manager.get_cascade_config().max_iterations == 25
            assert manager.get_cascade_config().max_seconds == 5.0
            assert manager.get_tail_config().min_block_trips == 1
            assert manager.get_classifier_config().excluded_periods == ["07:00 - 07:30"]
            assert manager.get_generation_config().cycle_time_minutes == 45
            assert manager.get_generation_config().first_trip_time == "06:00"

            print("✅ YAML config loading works")

        finally:
            Path(temp_path).unlink()

    def test_dict_config_loading(self):
        """Test loading configuration from dictionary."""
        manager = ScheduleConfigManager(config_dict={"trips": {"default_segment_minutes": 7.5}})

        engine_config = manager.get_engine_config()
        assert engine_config.trips.default_segment_minutes == 7.5
        assert engine_config.cascade.max_iterations == 100

        print("✅ Dictionary config loading works")

    def test_empty_config_uses_defaults(self):
        manager = ScheduleConfigManager(config_dict={})
        assert manager.get_engine_config() == EngineConfig()

    def test_config_validation(self):
        """Test configuration validation catches basic errors."""
        with pytest.raises(ValueError, match="Unknown configuration section"):
            ScheduleConfigManager(config_dict={"optimization": {}})

        with pytest.raises(ValueError, match="must be a mapping"):
            ScheduleConfigManager(config_dict={"cascade": [1, 2]})

        with pytest.raises(ValueError, match="excluded_periods"):
            ScheduleConfigManager(config_dict={"classifier": {"excluded_periods": "07:00 - 07:30"}})

        with pytest.raises(ValueError, match="Configuration is required"):
            ScheduleConfigManager()

        with pytest.raises(FileNotFoundError):
            ScheduleConfigManager("does/not/exist.yaml")

        print("✅ Config validation works")

    def test_config_summary_printing(self):
        """Test config summary prints without errors."""
        manager = ScheduleConfigManager(config_dict={"generation": {"automate_block_start_times": True}})

        try:
            manager.print_summary()
            print("✅ Config summary printing works")
        except Exception as e:
            pytest.fail(f"Config summary printing failed: {e}")
