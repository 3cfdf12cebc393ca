from datetime import datetime, timezone

import pytest

from utils.time import epoch_to_datetime, parse_epoch_string, parse_listing_time


def test_parse_listing_time_is_utc():
    assert parse_listing_time("2024-01-15 10:30") == 1705314600


def test_parse_listing_time_rejects_other_formats():
    with pytest.raises(ValueError):
        parse_listing_time("15/01/2024 10:30")


def test_parse_epoch_string():
    assert parse_epoch_string("1705314600") == 1705314600
    assert parse_epoch_string(1705314600) == 1705314600
    assert parse_epoch_string("") is None
    assert parse_epoch_string("yesterday") is None
    assert parse_epoch_string(None) is None


def test_epoch_to_datetime_round_trips_listing_time():
    parsed = epoch_to_datetime(parse_listing_time("2024-01-15 10:30"))

    assert parsed == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
