"""
Configuration management for the schedule cascade engine.

Structured, validated configuration objects for cascade guards, the tail
recovery rule, new-trip defaults, band classification, bulk generation and
logging, plus a YAML-backed manager that builds them.
"""

from .config_manager import (
    CascadeConfig,
    ClassifierConfig,
    EngineConfig,
    GenerationConfig,
    LoggingConfig,
    ScheduleConfigManager,
    TailRecoveryConfig,
    TripDefaultsConfig,
)

__all__ = [
    "CascadeConfig",
    "ClassifierConfig",
    "EngineConfig",
    "GenerationConfig",
    "LoggingConfig",
    "ScheduleConfigManager",
    "TailRecoveryConfig",
    "TripDefaultsConfig",
]
