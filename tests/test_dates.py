from datetime import datetime, timedelta, timezone

import pytest

from bing_maps.dates import parse_date


def test_ms_json_date_with_offset():
    parsed = parse_date("/Date(1700052326000-0800)/")
    assert parsed == datetime(2023, 11, 15, 12, 45, 26, tzinfo=timezone.utc)
    assert parsed.utcoffset() == timedelta(hours=-8)


def test_ms_json_date_without_offset():
    assert parse_date("/Date(0)/") == datetime(1970, 1, 1, tzinfo=timezone.utc)


def test_iso_strings():
    assert parse_date("2023-11-15T12:45:26Z") == datetime(2023, 11, 15, 12, 45, 26, tzinfo=timezone.utc)
    naive = parse_date("2023-11-15T12:45:26")
    assert naive.tzinfo is timezone.utc
    offset = parse_date("2023-11-15T12:45:26+05:30")
    assert offset.utcoffset() == timedelta(hours=5, minutes=30)


def test_epoch_millis():
    assert parse_date(1700052326000) == datetime(2023, 11, 15, 12, 45, 26, tzinfo=timezone.utc)


@pytest.mark.parametrize("value", [None, "", "yesterday", "/Date(abc)/"])
def test_unparseable(value):
    assert parse_date(value) is None
