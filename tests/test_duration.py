"""Tests for duration parsing."""

import math

import pytest

from tagquery import parse_duration


class TestParseDuration:
    """Tests for parse_duration function."""

    def test_milliseconds(self) -> None:
        assert parse_duration("100ms") == 100
        assert parse_duration("0ms") == 0

    def test_seconds_and_minutes(self) -> None:
        assert parse_duration("30s") == 30_000
        assert parse_duration("5m") == 300_000

    def test_hours_and_days(self) -> None:
        assert parse_duration("2h") == 7_200_000
        assert parse_duration("1d") == 86_400_000

    def test_fractional_values(self) -> None:
        """Test that decimal amounts scale to milliseconds."""
        assert parse_duration("1.5s") == 1500
        assert parse_duration("0.5m") == 30_000

    def test_number_passthrough(self) -> None:
        """Test that numbers are already milliseconds."""
        assert parse_duration(1000) == 1000
        assert parse_duration(2.5) == 2.5
        assert parse_duration(0) == 0

    def test_infinity_passthrough(self) -> None:
        assert parse_duration(math.inf) == math.inf

    def test_negative_rejected(self) -> None:
        with pytest.raises(ValueError, match="Invalid duration"):
            parse_duration(-1)

    def test_bool_rejected(self) -> None:
        with pytest.raises(TypeError, match="Invalid duration"):
            parse_duration(True)

    def test_invalid_format(self) -> None:
        """Test that invalid formats raise ValueError."""
        for value in ("invalid", "10x", "s10", "", "10", "-5s"):
            with pytest.raises(ValueError, match="Invalid duration"):
                parse_duration(value)
