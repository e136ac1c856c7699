"""Tests for remaining-time arithmetic and formatting."""

import pytest

from countdown.engine.countdown import CountdownParts, decompose, format_countdown, remaining_ms


class TestDecompose:
    def test_hours_minutes_seconds(self):
        assert decompose(3_661_000) == CountdownParts(0, 1, 1, 1)

    def test_days(self):
        assert decompose(2 * 86_400_000 + 5_000) == CountdownParts(2, 0, 0, 5)

    def test_partial_second_truncates(self):
        assert decompose(1_999) == CountdownParts(0, 0, 0, 1)
        assert decompose(999) == CountdownParts(0, 0, 0, 0)

    @pytest.mark.parametrize("ms", [0, -1, -86_400_000])
    def test_zero_or_negative_is_expired(self, ms):
        parts = decompose(ms)
        assert parts.expired
        assert (parts.days, parts.hours, parts.minutes, parts.seconds) == (0, 0, 0, 0)


class TestFormat:
    def test_zero_padded(self):
        assert format_countdown(decompose(3_661_000)) == "01:01:01"

    def test_days_prefix(self):
        assert format_countdown(decompose(86_400_000 + 3_600_000)) == "1d 01:00:00"

    def test_expired(self):
        assert format_countdown(decompose(0)) == "00:00:00"


def test_remaining_never_negative():
    assert remaining_ms(1_000, 5_000) == 0
    assert remaining_ms(5_000, 1_000) == 4_000
