"""Tests for input validation helpers."""

from datetime import date, datetime, timedelta, timezone

import pytest

from diary_sync.errors import InvalidRequestError
from diary_sync.validators import (
    MAX_PAGE_SIZE,
    format_validation_error,
    parse_date,
    parse_sync_datetime,
    validate_date_range,
    validate_query,
    validate_window,
)


def test_format_validation_error():
    assert format_validation_error("Diary date", "cannot be empty") == (
        "Diary date cannot be empty"
    )


class TestParseDate:
    def test_iso(self):
        assert parse_date("2024-02-29") == date(2024, 2, 29)

    def test_whitespace(self):
        assert parse_date("  2024-01-01 ") == date(2024, 1, 1)

    def test_passthrough(self):
        assert parse_date(date(2024, 1, 1)) == date(2024, 1, 1)
        assert parse_date(datetime(2024, 1, 1, 9, 30)) == date(2024, 1, 1)

    @pytest.mark.parametrize("value", ["", "  ", "2023-02-29", "01/02/2024", "today"])
    def test_invalid(self, value):
        with pytest.raises(InvalidRequestError):
            parse_date(value)

    def test_field_name_in_message(self):
        with pytest.raises(InvalidRequestError, match="min_date"):
            parse_date("nope", "min_date")

    def test_is_value_error(self):
        with pytest.raises(ValueError):
            parse_date("nope")


class TestParseSyncDatetime:
    def test_aware(self):
        parsed = parse_sync_datetime("2024-05-01T10:00:00+02:00")
        assert parsed.utcoffset() == timedelta(hours=2)

    def test_naive_is_utc(self):
        parsed = parse_sync_datetime("2024-05-01T10:00:00")
        assert parsed == datetime(2024, 5, 1, 10, tzinfo=timezone.utc)

    def test_datetime_passthrough(self):
        value = datetime(2024, 5, 1, tzinfo=timezone.utc)
        assert parse_sync_datetime(value) is value

    @pytest.mark.parametrize("value", ["", "yesterday", "2024-13-01T00:00"])
    def test_invalid(self, value):
        with pytest.raises(InvalidRequestError):
            parse_sync_datetime(value)


class TestValidateQuery:
    def test_strips(self):
        assert validate_query("  lunch ") == "lunch"

    def test_too_long(self):
        with pytest.raises(InvalidRequestError, match="maximum length"):
            validate_query("x" * 1001)

    def test_empty(self):
        with pytest.raises(InvalidRequestError, match="cannot be empty"):
            validate_query("   ")


class TestValidateWindow:
    def test_defaults(self):
        validate_window()

    def test_bounds(self):
        validate_window(0, 1)
        validate_window(10, MAX_PAGE_SIZE)

    @pytest.mark.parametrize("start, limit", [(-1, None), (0, 0), (0, MAX_PAGE_SIZE + 1)])
    def test_out_of_range(self, start, limit):
        with pytest.raises(InvalidRequestError):
            validate_window(start, limit)


class TestValidateDateRange:
    def test_open_ended(self):
        validate_date_range(None, date(2024, 1, 1))
        validate_date_range(date(2024, 1, 1), None)

    def test_single_day(self):
        validate_date_range(date(2024, 1, 1), date(2024, 1, 1))

    def test_inverted(self):
        with pytest.raises(InvalidRequestError, match="is after"):
            validate_date_range(date(2024, 2, 1), date(2024, 1, 1))
