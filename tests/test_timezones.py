#!/usr/bin/env python3
"""
Tests for local wall-clock ↔ UTC conversion.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from app.core.errors import InvalidTimeFormat, UnknownTimezone
from app.core.timezones import (
    LocalDateTime,
    get_zone,
    local_day_bounds,
    minutes_since_midnight,
    normalize_local,
    now_in,
    parse_date,
    resolve_timezone,
    to_instant,
    to_local,
)

UTC = timezone.utc
VIENNA = "Europe/Vienna"


class TestRoundTrip:
    """to_local(to_instant(s, tz), tz) == s away from DST transitions"""

    @pytest.mark.parametrize("tz_name", [
        "Europe/Vienna",
        "America/New_York",
        "Asia/Kolkata",
        "Australia/Lord_Howe",
        "Pacific/Chatham",
        "UTC",
    ])
    @pytest.mark.parametrize("local", [
        "2025-01-15T00:00:00",
        "2025-06-30T12:45:00",
        "2025-10-20T09:00:00",
        "2024-02-29T23:59:00",
    ])
    def test_round_trip(self, tz_name, local):
        assert to_local(to_instant(local, tz_name), tz_name) == local

    def test_instant_is_aware_utc(self):
        instant = to_instant("2025-10-20T09:00", VIENNA)
        assert instant == datetime(2025, 10, 20, 7, 0, tzinfo=UTC)
        assert instant.utcoffset() == timedelta(0)

    def test_winter_offset(self):
        assert to_instant("2025-01-15T09:00", VIENNA) == datetime(2025, 1, 15, 8, 0, tzinfo=UTC)


class TestDstTransitions:
    """Gap and overlap times resolve with fold=0"""

    def test_gap_time_uses_offset_before_transition(self):
        # 02:30 does not exist in Vienna on 2025-03-30; CET (+01:00) still applies
        assert to_instant("2025-03-30T02:30", VIENNA) == datetime(2025, 3, 30, 1, 30, tzinfo=UTC)

    def test_ambiguous_time_maps_to_first_occurrence(self):
        # 02:30 happens twice on 2025-10-26; the first one is still CEST (+02:00)
        assert to_instant("2025-10-26T02:30", VIENNA) == datetime(2025, 10, 26, 0, 30, tzinfo=UTC)

    def test_spring_forward_day_is_23_hours(self):
        start, end = local_day_bounds(date(2025, 3, 30), VIENNA)
        assert end - start == timedelta(hours=23)

    def test_fall_back_day_is_25_hours(self):
        start, end = local_day_bounds(date(2025, 10, 26), VIENNA)
        assert end - start == timedelta(hours=25)

    def test_minutes_since_midnight_is_wall_clock(self):
        # 03:30 CEST on the spring-forward day is 01:30Z; wall-clock minute 210
        instant = datetime(2025, 3, 30, 1, 30, tzinfo=UTC)
        assert minutes_since_midnight(instant, date(2025, 3, 30), VIENNA) == 210

    def test_minutes_since_midnight_relative_to_other_days(self):
        day = date(2025, 10, 20)
        assert minutes_since_midnight(to_instant("2025-10-19T23:30", VIENNA), day, VIENNA) == -30
        assert minutes_since_midnight(to_instant("2025-10-21T00:15", VIENNA), day, VIENNA) == 1455


class TestParsing:
    """Input normalization and rejection"""

    def test_space_separator_and_missing_seconds(self):
        assert normalize_local("2025-10-20 09:00") == "2025-10-20T09:00:00"

    def test_fractional_seconds_are_dropped(self):
        assert normalize_local("2025-10-20T09:00:05.250") == "2025-10-20T09:00:05"

    def test_normalize_rejects_offsets(self):
        with pytest.raises(InvalidTimeFormat):
            normalize_local("2025-10-20T09:00:00Z")

    @pytest.mark.parametrize("value", [
        "20.10.2025 09:00",
        "2025-10-20",
        "2025-13-01T09:00",
        "2025-02-30T09:00",
        "2025-10-20T25:00",
        "tomorrow at nine",
        "",
    ])
    def test_malformed_input(self, value):
        with pytest.raises(InvalidTimeFormat):
            to_instant(value, VIENNA)

    def test_non_string_input(self):
        with pytest.raises(InvalidTimeFormat):
            to_instant(None, VIENNA)

    def test_explicit_utc_suffix_is_honoured(self):
        assert to_instant("2025-10-20T09:00:00Z", VIENNA) == datetime(2025, 10, 20, 9, 0, tzinfo=UTC)

    def test_explicit_offset_is_honoured(self):
        assert to_instant("2025-10-20T09:00+05:30", VIENNA) == datetime(2025, 10, 20, 3, 30, tzinfo=UTC)

    def test_parse_date(self):
        assert parse_date("2025-10-20") == date(2025, 10, 20)
        assert parse_date(date(2025, 10, 20)) == date(2025, 10, 20)
        with pytest.raises(InvalidTimeFormat):
            parse_date("2025-10-32")
        with pytest.raises(InvalidTimeFormat):
            parse_date("20/10/2025")


class TestZones:
    """Zone lookup and fallback"""

    def test_unknown_zone_raises(self):
        with pytest.raises(UnknownTimezone):
            get_zone("Mars/Olympus_Mons")

    def test_empty_zone_raises(self):
        with pytest.raises(UnknownTimezone):
            get_zone("")

    def test_to_instant_with_unknown_zone(self):
        with pytest.raises(UnknownTimezone):
            to_instant("2025-10-20T09:00", "Not/AZone")

    def test_resolve_falls_back_to_default(self):
        assert resolve_timezone("Mars/Olympus_Mons") == "Europe/Vienna"
        assert resolve_timezone(None, default="UTC") == "UTC"
        assert resolve_timezone("America/Edmonton") == "America/Edmonton"

    def test_now_in_uses_given_instant(self):
        local = now_in(VIENNA, datetime(2025, 10, 20, 12, 30, tzinfo=UTC))
        assert (local.hour, local.minute) == (14, 30)


class TestLocalDateTime:
    """Value type carrying an instant and its zone"""

    def test_parse_and_render(self):
        ldt = LocalDateTime.parse("2025-10-20 13:00", VIENNA)
        assert ldt.instant == datetime(2025, 10, 20, 11, 0, tzinfo=UTC)
        assert ldt.isoformat_local() == "2025-10-20T13:00:00"
        assert ldt.local_date == date(2025, 10, 20)
        assert ldt.minute_of_day == 13 * 60
        assert str(ldt) == "2025-10-20T13:00:00 Europe/Vienna"

    def test_naive_instant_is_taken_as_utc(self):
        ldt = LocalDateTime(datetime(2025, 10, 20, 11, 0), VIENNA)
        assert ldt.instant.tzinfo is not None
        assert ldt.isoformat_local() == "2025-10-20T13:00:00"

    def test_addition_crosses_dst(self):
        # 01:30 + 1h of real time on spring-forward day lands on 03:30 wall clock
        ldt = LocalDateTime.parse("2025-03-30T01:30", VIENNA) + timedelta(hours=1)
        assert ldt.isoformat_local() == "2025-03-30T03:30:00"
