from datetime import datetime, timedelta, timezone

import pytest

from libre_fhir.utils.normalization import (
    file_timestamp,
    get_utc_date_from_string,
    parse_fhir_datetime,
    parse_libre_timestamp,
    to_fhir_instant,
    utc_from_local_wall_clock,
)


def test_parse_libre_timestamp_am_pm():
    assert parse_libre_timestamp("1/15/2024 10:30:00 AM") == datetime(2024, 1, 15, 10, 30)
    assert parse_libre_timestamp("1/15/2024 10:30:00 PM") == datetime(2024, 1, 15, 22, 30)
    assert parse_libre_timestamp("12/31/2023 12:05:00 AM") == datetime(2023, 12, 31, 0, 5)


def test_parse_libre_timestamp_iso_fallback():
    assert parse_libre_timestamp("2024-01-15T10:30:00") == datetime(2024, 1, 15, 10, 30)
    # aware strings keep their UTC wall clock
    assert parse_libre_timestamp("2024-01-15T11:30:00+01:00") == datetime(2024, 1, 15, 10, 30)


def test_parse_libre_timestamp_invalid():
    with pytest.raises(ValueError):
        parse_libre_timestamp("not a timestamp")


def test_utc_from_local_wall_clock_subtracts_local_offset():
    wall_clock = datetime(2024, 1, 15, 10, 30)
    local_offset = wall_clock.astimezone().utcoffset()
    result = utc_from_local_wall_clock(wall_clock)
    assert result.tzinfo == timezone.utc
    assert result == wall_clock.astimezone(timezone.utc) + local_offset


def test_wall_clock_is_kept_in_utc(utc_timezone):
    result = get_utc_date_from_string("1/15/2024 10:30:00 AM")
    assert to_fhir_instant(result) == "2024-01-15T10:30:00.000Z"


def test_wall_clock_is_kept_in_utc_with_non_utc_local_zone(berlin_timezone):
    # Berlin is UTC+1 in January: parsed as 09:30Z, shifted back by +1h
    result = get_utc_date_from_string("1/15/2024 10:30:00 AM")
    assert to_fhir_instant(result) == "2024-01-15T10:30:00.000Z"
    # and UTC+2 in summer
    result = get_utc_date_from_string("7/15/2024 10:30:00 AM")
    assert to_fhir_instant(result) == "2024-07-15T10:30:00.000Z"


def test_to_fhir_instant_formats_milliseconds():
    dt = datetime(2024, 1, 15, 10, 30, 0, 123456, tzinfo=timezone.utc)
    assert to_fhir_instant(dt) == "2024-01-15T10:30:00.123Z"
    # naive values are treated as UTC
    assert to_fhir_instant(datetime(2024, 1, 15, 10, 30)) == "2024-01-15T10:30:00.000Z"
    # other offsets are converted
    plus_two = timezone(timedelta(hours=2))
    assert to_fhir_instant(datetime(2024, 1, 15, 12, 30, tzinfo=plus_two)) == "2024-01-15T10:30:00.000Z"


def test_parse_fhir_datetime():
    assert parse_fhir_datetime("2024-01-15T10:30:00.000Z") == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
    assert parse_fhir_datetime("2024-01-15T12:30:00+02:00") == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
    assert parse_fhir_datetime("2024-01-15T10:30:00") == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
    assert parse_fhir_datetime(None) is None
    assert parse_fhir_datetime("garbage") is None


def test_file_timestamp_has_no_colons():
    stamp = file_timestamp(datetime(2024, 1, 15, 10, 30, 5, tzinfo=timezone.utc))
    assert stamp == "2024-01-15T10-30-05.000Z"
    assert ":" not in file_timestamp()
