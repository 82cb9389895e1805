"""Tests for match timestamp derivation."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from hoops_sync.errors import GameDocumentError
from hoops_sync.timestamps import first_operation_time, match_timestamp


UTC = timezone.utc
CST = timezone(timedelta(hours=8))


class TestMatchTimestamp:
    def test_pins_to_1930_on_operation_date(self):
        op = int(datetime(2024, 5, 18, 8, 15, 42, tzinfo=UTC).timestamp() * 1000)
        result = match_timestamp(op, tz=UTC)
        assert result == int(datetime(2024, 5, 18, 19, 30, tzinfo=UTC).timestamp() * 1000)

    def test_uses_calendar_date_in_given_timezone(self):
        # 2024-05-18 20:00 UTC is already 2024-05-19 in UTC+8
        op = int(datetime(2024, 5, 18, 20, 0, tzinfo=UTC).timestamp() * 1000)
        result = match_timestamp(op, tz=CST)
        assert result == int(datetime(2024, 5, 19, 19, 30, tzinfo=CST).timestamp() * 1000)

    def test_local_time_of_day_is_1930(self):
        result = match_timestamp(1716020000000)
        local = datetime.fromtimestamp(result / 1000)
        assert (local.hour, local.minute, local.second, local.microsecond) == (19, 30, 0, 0)
        assert local.date() == datetime.fromtimestamp(1716020000).date()

    def test_falls_back_to_clock_when_absent(self):
        now = datetime(2025, 1, 2, 3, 4, 5, tzinfo=UTC).timestamp()
        result = match_timestamp(None, now=lambda: now, tz=UTC)
        assert result == int(datetime(2025, 1, 2, 19, 30, tzinfo=UTC).timestamp() * 1000)

    def test_falls_back_to_system_clock(self):
        result = match_timestamp(None, tz=UTC)
        pinned = datetime.fromtimestamp(result / 1000, tz=UTC)
        assert (pinned.hour, pinned.minute) == (19, 30)
        assert abs((pinned.date() - datetime.now(tz=UTC).date()).days) <= 1

    def test_returns_int_milliseconds(self):
        assert isinstance(match_timestamp(1716020000000, tz=UTC), int)

    @pytest.mark.parametrize("raw", ["abc", [1], float("inf"), 10**30])
    def test_rejects_unusable_operation_time(self, raw):
        with pytest.raises(GameDocumentError):
            match_timestamp(raw, tz=UTC)


class TestFirstOperationTime:
    def test_skips_null_and_missing(self):
        details = [{"timestamp": None}, {"type": "jumpball"}, {"timestamp": 5}, {"timestamp": 9}]
        assert first_operation_time(details) == 5

    def test_zero_is_a_defined_timestamp(self):
        assert first_operation_time([{"timestamp": None}, {"timestamp": 0}]) == 0

    def test_none_when_no_timestamp(self):
        assert first_operation_time([]) is None
        assert first_operation_time([{"timestamp": None}]) is None
