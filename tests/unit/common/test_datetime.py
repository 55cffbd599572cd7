"""Tests for common.datetime module."""

from datetime import datetime, timezone

from common.datetime import http_date_to_millis, millis_to_datetime


class TestHttpDateToMillis:
    def test_parses_rfc_1123_date(self) -> None:
        assert http_date_to_millis("Tue, 02 Jan 2024 00:00:00 GMT") == 1704153600000

    def test_none_and_empty_are_none(self) -> None:
        assert http_date_to_millis(None) is None
        assert http_date_to_millis("") is None

    def test_garbage_is_none(self) -> None:
        assert http_date_to_millis("not a date") is None


class TestMillisToDatetime:
    def test_converts_to_utc(self) -> None:
        assert millis_to_datetime(1704153600000) == datetime(2024, 1, 2, tzinfo=timezone.utc)
