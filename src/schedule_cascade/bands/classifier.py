"""
Service band classification.

A trip's service band is the travel-time class of the 30-minute period it
departs in. With a travel-time analysis table, the median (``percentile50``)
segment times of each period are summed, and the period totals are split into
five classes at the 20th/40th/60th/80th percentiles. Without a table a static
hour-of-day mapping is used.

Two entry points mirror how the editor uses them:

- ``classify_service_band`` recomputes the thresholds from the table on every
  call (exact, used when a single trip is banded).
- ``determine_service_band_for_time`` looks the time's 30-minute window up in a
  precomputed period -> band table (cheap, used inside cascades).

Both are pure functions of their inputs.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from schedule_cascade.core.models import BAND_ORDER, DEFAULT_BAND_COLORS, FALLBACK_BAND_COLOR, TravelTimeRecord
from schedule_cascade.core.time_arithmetic import (
    MINUTES_PER_DAY,
    parse_period,
    period_bucket,
    round_half_up,
    time_to_minutes,
)

logger = logging.getLogger(__name__)

THRESHOLD_PERCENTILES = (20, 40, 60, 80)
DEFAULT_BAND = "Standard Service"

# (start hour inclusive, end hour exclusive, band)
STATIC_HOUR_BANDS = (
    (6, 9, "Fastest Service"),
    (9, 12, "Fast Service"),
    (12, 15, "Standard Service"),
    (15, 18, "Slow Service"),
)


@dataclass(frozen=True)
class PeriodExclusions:
    """
    Analysis periods the user removed from band classification.

    Periods are identified by their start minute so that label variants such
    as ``"07:00 - 07:30"`` and ``"07:00 - 07:29"`` refer to the same window.
    """

    starts: frozenset[int] = field(default_factory=frozenset)

    @classmethod
    def from_labels(cls, labels: Iterable[str]) -> "PeriodExclusions":
        starts = set()
        for label in labels:
            parsed = parse_period(label)
            if parsed is None:
                logger.warning(f"⚠️ Ignoring unparseable excluded period {label!r}")
                continue
            starts.add(parsed[0])
        return cls(frozenset(starts))

    def excludes(self, period_start: int) -> bool:
        return period_start in self.starts

    def __len__(self) -> int:
        return len(self.starts)


def static_service_band(minutes: int) -> str:
    """Hour-of-day fallback used when no analysis data is available."""
    hour = (minutes % MINUTES_PER_DAY) // 60
    for start_hour, end_hour, band in STATIC_HOUR_BANDS:
        if start_hour <= hour < end_hour:
            return band
    return "Slowest Service"


def period_totals(
    travel_time_data: Sequence[TravelTimeRecord],
    excluded_periods: PeriodExclusions | None = None,
) -> pd.DataFrame:
    """
    Sum median travel minutes per analysis period.

    Returns:
        DataFrame with columns ``period_start``, ``period_end``, ``raw_total``
        and ``total`` (``raw_total`` rounded half-up), sorted by ``total``
        ascending. Excluded and unparseable periods are dropped.
    """
    excluded_periods = excluded_periods or PeriodExclusions()
    rows = []
    for record in travel_time_data:
        parsed = parse_period(record.time_period)
        if parsed is None:
            continue
        if excluded_periods.excludes(parsed[0]):
            continue
        rows.append({"period_start": parsed[0], "period_end": parsed[1], "percentile50": float(record.percentile50)})

    if not rows:
        return pd.DataFrame(columns=["period_start", "period_end", "raw_total", "total"])

    frame = pd.DataFrame(rows)
    totals = (
        frame.groupby(["period_start", "period_end"], sort=False)["percentile50"]
        .sum()
        .reset_index()
        .rename(columns={"percentile50": "raw_total"})
    )
    totals["total"] = totals["raw_total"].map(round_half_up)
    return totals.sort_values("total", kind="stable").reset_index(drop=True)


def percentile_thresholds(totals: Sequence[float]) -> list[float]:
    """
    Band thresholds at the 20th/40th/60th/80th percentiles.

    Uses the nearest-rank rule ``index = ceil(p/100 * n) - 1`` clamped to 0 on
    the ascending totals. An empty input gives all-zero thresholds.
    """
    values = np.sort(np.asarray(list(totals), dtype=float))
    n = len(values)
    if n == 0:
        return [0.0] * len(THRESHOLD_PERCENTILES)

    thresholds = []
    for percentile in THRESHOLD_PERCENTILES:
        index = -(-percentile * n // 100) - 1  # integer ceil
        thresholds.append(float(values[max(0, index)]))
    return thresholds


def band_for_total(total: float, thresholds: Sequence[float]) -> str:
    """Map a period total to a band using strictly-less comparisons."""
    for band, threshold in zip(BAND_ORDER, thresholds):
        if total < threshold:
            return band
    return BAND_ORDER[-1]


class ServiceBandClassifier:
    """
    Percentile-based classifier over one travel-time analysis table.

    The period totals, thresholds and period -> band table are computed once at
    construction, so classifying many departures (as a cascade does) costs a
    dictionary lookup each. Thresholds come from the rounded totals; each
    period is banded on its unrounded total.

    Example:
        ```python
        classifier = ServiceBandClassifier(schedule.travel_time_data)
        band = classifier.classify("07:45")
        ```
    """

    def __init__(
        self,
        travel_time_data: Sequence[TravelTimeRecord] | None = None,
        excluded_periods: PeriodExclusions | None = None,
    ):
        self.travel_time_data = list(travel_time_data or [])
        self.excluded_periods = excluded_periods or PeriodExclusions()
        self.totals = period_totals(self.travel_time_data, self.excluded_periods)
        self.thresholds = percentile_thresholds(self.totals["total"].tolist())
        self.period_band_map = {
            period_bucket(int(row.period_start)): band_for_total(row.raw_total, self.thresholds)
            for row in self.totals.itertuples(index=False)
        }
        self._windows = [
            (int(row.period_start), int(row.period_end), row.raw_total) for row in self.totals.itertuples(index=False)
        ]

    @property
    def has_data(self) -> bool:
        return bool(self.travel_time_data)

    def classify(self, time: str) -> str:
        """Band for a departure time, matching it against the analysis periods."""
        minutes = time_to_minutes(time)
        if minutes is None:
            logger.warning(f"⚠️ Cannot classify malformed time {time!r}, using {DEFAULT_BAND}")
            return DEFAULT_BAND

        if not self.has_data:
            return static_service_band(minutes)

        for candidate in (minutes, minutes % MINUTES_PER_DAY):
            for start, end, total in self._windows:
                if start <= candidate < end:
                    return band_for_total(total, self.thresholds)

        logger.debug(f"No analysis period covers {time}, using {DEFAULT_BAND}")
        return DEFAULT_BAND

    def classify_minutes(self, minutes: int) -> str:
        """Cheap lookup of a 30-minute window in the precomputed table."""
        return determine_service_band_for_minutes(minutes, self.period_band_map)


def classify_service_band(
    time: str,
    travel_time_data: Sequence[TravelTimeRecord] | None = None,
    excluded_periods: PeriodExclusions | None = None,
) -> str:
    """
    Classify a departure time into one of the five ordered service bands.

    Args:
        time: Departure time ``"HH:MM"``
        travel_time_data: Optional analysis table; without it the static hour
            ranges apply
        excluded_periods: Periods skipped when totals and thresholds are built

    Returns:
        Band name from ``BAND_ORDER``.
    """
    return ServiceBandClassifier(travel_time_data, excluded_periods).classify(time)


def build_period_band_map(
    travel_time_data: Sequence[TravelTimeRecord],
    excluded_periods: PeriodExclusions | None = None,
) -> dict[int, str]:
    """Precompute 30-minute bucket index -> band for ``determine_service_band_for_time``."""
    return ServiceBandClassifier(travel_time_data, excluded_periods).period_band_map


def determine_service_band_for_minutes(minutes: int, period_band_map: dict[int, str] | None) -> str:
    if period_band_map:
        for candidate in (minutes, minutes % MINUTES_PER_DAY):
            band = period_band_map.get(period_bucket(candidate))
            if band is not None:
                return band
    return static_service_band(minutes)


def determine_service_band_for_time(time: str, period_band_map: dict[int, str] | None = None) -> str:
    """
    Band for a time via its 30-minute window in a precomputed table.

    Falls back to the static hour ranges when the window has no mapping.
    """
    minutes = time_to_minutes(time)
    if minutes is None:
        logger.warning(f"⚠️ Cannot classify malformed time {time!r}, using {DEFAULT_BAND}")
        return DEFAULT_BAND
    return determine_service_band_for_minutes(minutes, period_band_map)


def service_band_color(name: str) -> str:
    """Display colour for a band name (short names like ``"Fast"`` accepted)."""
    if name in DEFAULT_BAND_COLORS:
        return DEFAULT_BAND_COLORS[name]
    long_name = f"{name} Service"
    return DEFAULT_BAND_COLORS.get(long_name, FALLBACK_BAND_COLOR)
