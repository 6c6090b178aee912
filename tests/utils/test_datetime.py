"""Tests for datetime utilities."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfoNotFoundError

import pytest

from booking_commons.utils.datetime import parse_iso8601, to_utc, utc_now


def test_utc_now_is_aware():
    assert utc_now().tzinfo == timezone.utc


def test_naive_datetime_is_assumed_utc():
    assert to_utc(datetime(2025, 6, 15, 12, 0)) == datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def test_naive_datetime_in_source_timezone():
    converted = to_utc(datetime(2025, 6, 15, 15, 0), source_tz="Europe/Istanbul")

    assert converted == datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def test_aware_datetime_is_converted():
    aware = datetime(2025, 6, 15, 8, 0, tzinfo=timezone(timedelta(hours=-4)))

    assert to_utc(aware, source_tz="Asia/Tokyo") == datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("value", ["2025-06-15T12:00:00Z", "2025-06-15T12:00:00+00:00", " 2025-06-15T12:00:00 "])
def test_parse_iso8601(value):
    assert parse_iso8601(value) == datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def test_parse_iso8601_offset_ignores_source_timezone():
    parsed = parse_iso8601("2025-06-15T12:00:00+02:00", source_tz="America/New_York")

    assert parsed == datetime(2025, 6, 15, 10, 0, tzinfo=timezone.utc)


def test_parse_iso8601_invalid():
    with pytest.raises(ValueError):
        parse_iso8601("next tuesday")


def test_unknown_timezone():
    with pytest.raises(ZoneInfoNotFoundError):
        parse_iso8601("2025-06-15T12:00:00", source_tz="Mars/Olympus_Mons")
