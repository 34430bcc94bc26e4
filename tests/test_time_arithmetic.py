"""
Tests for HH:MM time arithmetic.

Times past midnight keep counting hours ("25:10"), malformed values become
None instead of raising, and rounding is half-up everywhere.
"""

import logging

import pytest

from schedule_cascade.core.time_arithmetic import (
    add_minutes,
    minutes_to_time,
    parse_period,
    period_bucket,
    period_label,
    round_half_up,
    time_difference,
    time_to_minutes,
    unwrap_overnight,
)


class TestConversions:
    """Test string <-> minute conversion."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("00:00", 0),
            ("07:05", 425),
            ("7:05", 425),
            ("23:59", 1439),
            ("25:10", 1510),
            ("08:15:30", 495),
        ],
    )
    def test_time_to_minutes(self, value, expected):
        assert time_to_minutes(value) == expected

    @pytest.mark.parametrize("value", [None, "", "-", "  "])
    def test_empty_values_are_invalid(self, value):
        assert time_to_minutes(value) is None

    def test_malformed_values_warn_and_return_none(self, caplog):
        """Malformed input is logged, never raised."""
        with caplog.at_level(logging.WARNING):
            assert time_to_minutes("7h30") is None
            assert time_to_minutes("07:75") is None

        assert "Malformed time value" in caplog.text
        assert "out of range" in caplog.text
        print("✅ Malformed times return None with a warning")

    def test_minutes_to_time_does_not_wrap(self):
        assert minutes_to_time(425) == "07:05"
        assert minutes_to_time(1510) == "25:10"
        assert minutes_to_time(0) == "00:00"

    def test_negative_minutes_clamp_to_midnight(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert minutes_to_time(-5) == "00:00"
        assert "clamped" in caplog.text

    def test_add_minutes(self):
        assert add_minutes("06:50", 15) == "07:05"
        assert add_minutes("23:50", 30) == "24:20"
        assert add_minutes("07:00", -10) == "06:50"

    def test_add_minutes_keeps_malformed_value(self):
        """A bad cell stays visible instead of being wiped."""
        assert add_minutes("junk", 5) == "junk"
        print("✅ add_minutes leaves malformed input untouched")

    def test_time_difference(self):
        assert time_difference("06:00", "06:43") == 43
        assert time_difference("06:00", "bad") is None


class TestPeriods:
    """Test 30-minute analysis periods."""

    def test_period_bucket_and_label(self):
        assert period_bucket(time_to_minutes("07:00")) == 14
        assert period_bucket(time_to_minutes("07:29")) == 14
        assert period_bucket(time_to_minutes("07:30")) == 15
        assert period_label(time_to_minutes("07:10")) == "07:00 - 07:30"

    def test_parse_period_exclusive_end(self):
        assert parse_period("07:00 - 07:30") == (420, 450)

    def test_parse_period_inclusive_end_is_widened(self):
        """'07:00 - 07:29' covers the same window as '07:00 - 07:30'."""
        assert parse_period("07:00 - 07:29") == (420, 450)
        print("✅ Inclusive period labels are widened by one minute")

    def test_parse_period_across_midnight(self):
        assert parse_period("23:30 - 00:00") == (1410, 1440)

    def test_parse_period_rejects_garbage(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert parse_period("morning") is None
        assert "Malformed time period" in caplog.text


class TestOvernightAndRounding:
    """Test midnight unwrapping and half-up rounding."""

    def test_unwrap_overnight(self):
        assert unwrap_overnight([1420, 1435, 5, 20]) == [1420, 1435, 1445, 1460]

    def test_small_drops_are_not_rollovers(self):
        """A drop smaller than half a day is a data error, not a new day."""
        assert unwrap_overnight([600, 590, 620]) == [600, 590, 620]

    @pytest.mark.parametrize(
        "value, expected",
        [(2.5, 3), (2.4, 2), (3.5, 4), (0.5, 1), (-2.5, -3), (10.0, 10)],
    )
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected
