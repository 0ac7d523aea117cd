"""Tests for pair/window parsing and day <-> timestamp conversion."""

from datetime import date

import pytest

from sma.exceptions import InvalidPairError, InvalidWindowError, ValidationError
from sma.models import (
    MAX_WINDOW,
    CompletenessReport,
    Pair,
    Window,
    day_to_timestamp,
    timestamp_to_day,
)


class TestPair:
    def test_parse_known_pairs(self) -> None:
        assert Pair.parse("BRLBTC") is Pair.BRLBTC
        assert Pair.parse("BRLETH") is Pair.BRLETH

    @pytest.mark.parametrize("value", ["BTCBRL", "brlbtc", "", "BRLXRP"])
    def test_parse_unknown_pair_raises(self, value: str) -> None:
        with pytest.raises(InvalidPairError) as exc_info:
            Pair.parse(value)
        assert exc_info.value.reason == "invalid_pair"
        assert isinstance(exc_info.value, ValidationError)


class TestWindow:
    @pytest.mark.parametrize("value,expected", [(20, Window.SMA20), ("50", Window.SMA50), ("200", Window.SMA200)])
    def test_parse_valid(self, value, expected) -> None:
        assert Window.parse(value) is expected

    @pytest.mark.parametrize("value", [None, "", "abc", 0, 30, "100", "20.5"])
    def test_parse_invalid_raises(self, value) -> None:
        with pytest.raises(InvalidWindowError) as exc_info:
            Window.parse(value)
        assert exc_info.value.reason == "invalid_window"

    @pytest.mark.parametrize("value", [20.7, 20.0, 50.2, True])
    def test_non_integral_values_are_not_truncated(self, value) -> None:
        """Floats and booleans never coerce to a window."""
        with pytest.raises(InvalidWindowError):
            Window.parse(value)

    def test_parse_accepts_member(self) -> None:
        assert Window.parse(Window.SMA200) is Window.SMA200

    def test_column_names(self) -> None:
        assert [w.column for w in Window] == ["sma20", "sma50", "sma200"]

    def test_max_window(self) -> None:
        assert MAX_WINDOW == 200


class TestTimestamps:
    def test_day_to_timestamp_is_utc_midnight(self) -> None:
        assert day_to_timestamp(date(2025, 5, 14)) == 1747180800

    def test_timestamp_to_day_truncates_time_of_day(self) -> None:
        assert timestamp_to_day(1747180800 + 23 * 3600) == date(2025, 5, 14)

    def test_round_trip(self) -> None:
        day = date(2024, 2, 29)
        assert timestamp_to_day(day_to_timestamp(day)) == day


class TestCompletenessReport:
    def test_is_complete_without_missing_days(self) -> None:
        report = CompletenessReport(Pair.BRLBTC, date(2025, 1, 1), date(2025, 1, 31))
        assert report.is_complete

    def test_not_complete_with_missing_days(self) -> None:
        report = CompletenessReport(
            Pair.BRLBTC, date(2025, 1, 1), date(2025, 1, 31), [date(2025, 1, 5)]
        )
        assert not report.is_complete
