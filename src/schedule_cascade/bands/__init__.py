from .classifier import (
    PeriodExclusions,
    ServiceBandClassifier,
    build_period_band_map,
    classify_service_band,
    determine_service_band_for_time,
    service_band_color,
)

__all__ = ["PeriodExclusions",
           "ServiceBandClassifier",
           "build_period_band_map",
           "classify_service_band",
           "determine_service_band_for_time",
           "service_band_color"]
