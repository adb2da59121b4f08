"""Tests for cagateway.services.validity.ValidityPeriodConverter."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from cagateway.core.errors import MUST_PROVIDE_VALIDITY_PERIOD, ClientInputError
from cagateway.services.validity import DEFAULT_BACKDATE_SECONDS, ValidityPeriodConverter

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture()
def converter():
    return ValidityPeriodConverter(clock=lambda: NOW)


class TestSeconds:
    @pytest.mark.parametrize(
        "period,expected",
        [
            ("365", 365),
            (" 31536000 ", 31536000),
            (3600, 3600),
            ("30s", 30),
            ("15m", 900),
            ("2h", 7200),
            ("1d", 86400),
            ("1w", 604800),
            ("1y", 31536000),
            ("2D", 172800),
        ],
    )
    def test_valid(self, converter, period, expected):
        assert converter.seconds(period) == expected

    @pytest.mark.parametrize("period", [None, "", "abc", "-5", "0", 0, -1, "1.5", "10x", True])
    def test_invalid(self, converter, period):
        with pytest.raises(ClientInputError) as exc_info:
            converter.seconds(period)
        assert exc_info.value.detail == MUST_PROVIDE_VALIDITY_PERIOD


class TestConvert:
    def test_window(self, converter):
        window = converter.convert("86400")
        assert window.not_before == NOW - timedelta(hours=6)
        assert window.not_after == NOW + timedelta(days=1)

    def test_default_backdate(self):
        assert DEFAULT_BACKDATE_SECONDS == 21600

    def test_custom_backdate(self):
        converter = ValidityPeriodConverter(backdate_seconds=0, clock=lambda: NOW)
        assert converter.convert("60").not_before == NOW

    def test_default_clock_is_utc(self):
        window = ValidityPeriodConverter().convert("60")
        assert window.not_before.tzinfo is not None
        assert window.not_before < window.not_after

    @pytest.mark.parametrize("period", ["20000y", "99999999999y", 10**20])
    def test_beyond_datetime_range(self, converter, period):
        with pytest.raises(ClientInputError) as exc_info:
            converter.convert(period)
        assert exc_info.value.detail == MUST_PROVIDE_VALIDITY_PERIOD
