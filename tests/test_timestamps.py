"""Tests for content_sync.timestamps: tolerant date parsing."""

from datetime import date, datetime, timedelta, timezone

import pytest

from content_sync.timestamps import (
    format_timestamp,
    is_at_least_as_new,
    normalize_timestamp,
    parse_timestamp,
)


class TestNormalizeTimestamp:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("2024-01-05T10:00:00Z", "2024-01-05T10:00:00.000Z"),
            ("2024-01-05T10:00:00.123+02:00", "2024-01-05T08:00:00.123Z"),
            ("2024-01-05", "2024-01-05T00:00:00.000Z"),
            ("2024-01-05 10:00", "2024-01-05T10:00:00.000Z"),
            ("2024-01-05T10:00", "2024-01-05T10:00:00.000Z"),
            ("2024-01-05T10:00+07", "2024-01-05T03:00:00.000Z"),
            ("2024-01-05 10:00:30 +0700", "2024-01-05T03:00:30.000Z"),
            ("  2024-01-05T10:00:00Z  ", "2024-01-05T10:00:00.000Z"),
            ("1/5/2024", "2024-01-05T00:00:00.000Z"),
            ("1/5/2024 14:30", "2024-01-05T14:30:00.000Z"),
        ],
    )
    def test_accepted_shapes(self, raw, expected):
        assert normalize_timestamp(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "   ", "not a date", "2024-13-45"])
    def test_unparseable_returns_none(self, raw):
        assert normalize_timestamp(raw) is None

    def test_naive_datetime_taken_as_utc(self):
        assert (
            normalize_timestamp(datetime(2024, 1, 5, 10, 0))
            == "2024-01-05T10:00:00.000Z"
        )

    def test_date_object(self):
        assert normalize_timestamp(date(2024, 1, 5)) == "2024-01-05T00:00:00.000Z"


class TestParseTimestamp:
    def test_result_is_aware_utc(self):
        parsed = parse_timestamp("2024-01-05T10:00:00+05:30")
        assert parsed.tzinfo is not None
        assert parsed.utcoffset() == timedelta(0)
        assert parsed.hour == 4 and parsed.minute == 30

    def test_format_round_trip_is_stable(self):
        once = normalize_timestamp("2024-01-05 10:00")
        assert normalize_timestamp(once) == once

    def test_format_converts_offsets(self):
        tz = timezone(timedelta(hours=-5))
        assert (
            format_timestamp(datetime(2024, 1, 5, 10, 0, tzinfo=tz))
            == "2024-01-05T15:00:00.000Z"
        )


class TestIsAtLeastAsNew:
    def test_equal_is_current(self):
        assert is_at_least_as_new(
            "2024-01-05T10:00:00.000Z", "2024-01-05 10:00"
        )

    def test_newer_existing_is_current(self):
        assert is_at_least_as_new("2024-02-01", "2024-01-01")

    def test_older_existing_is_stale(self):
        assert not is_at_least_as_new("2024-01-01", "2024-02-01")

    @pytest.mark.parametrize(
        "existing,incoming",
        [(None, "2024-01-01"), ("2024-01-01", None), ("garbage", "2024-01-01")],
    )
    def test_missing_or_unparseable_is_stale(self, existing, incoming):
        assert not is_at_least_as_new(existing, incoming)
