"""Tests for duration parsing."""

import pytest

from consigncache import parse_duration


class TestParseDuration:
    """Tests for parse_duration function."""

    def test_milliseconds(self) -> None:
        """Test parsing milliseconds."""
        assert parse_duration("500ms") == 0.5
        assert parse_duration("0ms") == 0

    def test_seconds(self) -> None:
        """Test parsing seconds."""
        assert parse_duration("1s") == 1
        assert parse_duration("30s") == 30

    def test_minutes(self) -> None:
        """Test parsing minutes."""
        assert parse_duration("1m") == 60
        assert parse_duration("30m") == 1_800

    def test_hours(self) -> None:
        """Test parsing hours."""
        assert parse_duration("1h") == 3_600
        assert parse_duration("2h") == 7_200

    def test_days(self) -> None:
        """Test parsing days."""
        assert parse_duration("1d") == 86_400
        assert parse_duration("7d") == 604_800

    def test_integer_passthrough(self) -> None:
        """Test that integers pass through as seconds."""
        assert parse_duration(3600) == 3600
        assert parse_duration(0) == 0

    def test_invalid_format(self) -> None:
        """Test that invalid formats raise ValueError."""
        for bad in ("invalid", "10x", "s10", "", "10", "-5s"):
            with pytest.raises(ValueError, match="Invalid duration"):
                parse_duration(bad)

    def test_negative_integer(self) -> None:
        """Test that negative integers are rejected."""
        with pytest.raises(ValueError, match="Invalid duration"):
            parse_duration(-1)
