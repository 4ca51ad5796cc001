"""Tests for timestamp parsing and formatting."""

from datetime import date, datetime, timedelta

import pytest
from dateutil import tz

from expense_notes.dates import (
    FellBackToNow,
    Parsed,
    PolicyKind,
    TimezonePolicy,
    ensure_aware,
    format_instant,
    month_name,
    parse_datetime,
    parse_instant,
    year_month_of,
)

from conftest import NOW


class TestTimezonePolicy:
    """Tests for reading the configured policy."""

    @pytest.mark.parametrize("text", ["local", "LOCAL", "", None])
    def test_local(self, text):
        """Empty and 'local' mean host time."""
        assert TimezonePolicy.parse(text).kind == PolicyKind.LOCAL

    def test_utc(self):
        """'utc' is a zero offset."""
        policy = TimezonePolicy.parse("UTC")
        assert policy.kind == PolicyKind.UTC
        assert policy.tzinfo().utcoffset(None) == timedelta(0)

    @pytest.mark.parametrize("text,hours", [
        ("+2", 2),
        ("-5", -5),
        ("+5.5", 5.5),
        ("+05:30", 5.5),
        ("utc+1", 1),
    ])
    def test_fixed_offsets(self, text, hours):
        """Numeric offsets become fixed-offset policies."""
        policy = TimezonePolicy.parse(text)
        assert policy.kind == PolicyKind.OFFSET
        assert policy.offset_hours == hours

    def test_unknown_falls_back_to_local(self):
        """Garbage policy text is treated as local time."""
        assert TimezonePolicy.parse("mars/olympus").kind == PolicyKind.LOCAL

    def test_out_of_range_offset_falls_back_to_local(self):
        """Offsets beyond +-14h are rejected."""
        assert TimezonePolicy.parse("+20").kind == PolicyKind.LOCAL

    def test_zone_name(self):
        """IANA names select a DST-aware zone."""
        policy = TimezonePolicy.parse("Europe/Berlin")
        assert policy.kind == PolicyKind.ZONE
        assert policy.tzinfo() is not None

    def test_unknown_zone_name_rejected(self):
        """named() refuses zones dateutil doesn't know."""
        with pytest.raises(ValueError):
            TimezonePolicy.named("Nowhere/Atlantis")

    def test_localize_to_zone(self, berlin):
        """Fixed offsets become the zone's own wall clock."""
        instant = parse_instant("2025-03-01T09:00:00+01:00", berlin)
        assert instant.tzinfo == tz.tzoffset(None, 3600)
        local = berlin.localize(instant)
        assert local == instant
        assert local.hour == 9
        assert local.tzinfo == tz.gettz("Europe/Berlin")

    def test_localize_keeps_fixed_policies(self):
        """UTC and fixed-offset policies keep the value as read."""
        instant = datetime(2025, 3, 1, 9, tzinfo=tz.tzoffset(None, 3600))
        assert TimezonePolicy.utc().localize(instant) is instant
        assert TimezonePolicy.fixed(2).localize(instant) is instant


class TestParseDatetime:
    """Tests for parse_datetime."""

    def test_date_only_uses_policy(self):
        """A bare date is midnight in the policy zone."""
        outcome = parse_datetime("2025-01-31", TimezonePolicy.fixed(2))
        assert isinstance(outcome, Parsed)
        assert outcome.instant == datetime(2025, 1, 30, 22, 0, tzinfo=tz.UTC)

    def test_naive_datetime_uses_policy(self):
        """Naive datetimes get the policy offset."""
        instant = parse_instant("2025-01-31 09:00", TimezonePolicy.fixed(-5))
        assert instant.utcoffset() == timedelta(hours=-5)
        assert instant.hour == 9

    def test_explicit_offset_ignores_policy(self):
        """Strings with an offset are absolute regardless of policy."""
        instant = parse_instant("2025-01-31T09:00:00+02:00", TimezonePolicy.utc())
        assert instant == datetime(2025, 1, 31, 7, 0, tzinfo=tz.UTC)

    def test_z_suffix_ignores_policy(self):
        """A Z suffix is UTC even under a fixed-offset policy."""
        instant = parse_instant("2025-01-31T09:00:00Z", TimezonePolicy.fixed(5))
        assert instant.utcoffset() == timedelta(0)
        assert instant.hour == 9

    def test_date_object_accepted(self):
        """date objects are treated like date-only strings."""
        outcome = parse_datetime(date(2025, 3, 1), TimezonePolicy.utc())
        assert outcome.instant == datetime(2025, 3, 1, tzinfo=tz.UTC)

    def test_garbage_falls_back_to_now(self):
        """Unparsable text yields an explicit fallback, not an exception."""
        outcome = parse_datetime("not a date", TimezonePolicy.utc(), now=NOW)
        assert isinstance(outcome, FellBackToNow)
        assert outcome.outcome == "fell_back_to_now"
        assert outcome.instant == NOW
        assert "unparsable" in outcome.reason

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_falls_back_to_now(self, text):
        """Empty cells fall back to now."""
        outcome = parse_datetime(text, TimezonePolicy.utc(), now=NOW)
        assert isinstance(outcome, FellBackToNow)
        assert outcome.reason == "empty date"

    def test_fallback_without_now_is_aware(self):
        """Without an injected now the fallback uses the current time."""
        outcome = parse_datetime("nope", TimezonePolicy.utc())
        assert outcome.instant.tzinfo is not None


class TestFormatInstant:
    """Tests for format_instant."""

    def test_utc_uses_z_suffix(self):
        """UTC instants end with Z."""
        assert format_instant(datetime(2025, 1, 31, 9, 0, tzinfo=tz.UTC)) == "2025-01-31T09:00:00Z"

    def test_offset_is_kept(self):
        """Non-UTC instants keep their explicit offset."""
        value = datetime(2025, 1, 31, 9, 0, tzinfo=tz.tzoffset(None, 7200))
        assert format_instant(value) == "2025-01-31T09:00:00+02:00"

    def test_round_trip_is_policy_independent(self):
        """Formatted text parses back to the same instant under any policy."""
        value = datetime(2025, 6, 30, 23, 30, tzinfo=tz.tzoffset(None, -3 * 3600))
        text = format_instant(value)
        for policy in (TimezonePolicy.utc(), TimezonePolicy.fixed(9), TimezonePolicy.local()):
            assert parse_instant(text, policy) == value


class TestDateHelpers:
    """Tests for small date helpers."""

    def test_ensure_aware_keeps_aware_values(self):
        """Aware values are returned unchanged."""
        assert ensure_aware(NOW, TimezonePolicy.fixed(3)) is NOW

    def test_year_month_uses_wall_clock(self):
        """The key follows the instant's own calendar date."""
        value = datetime(2025, 1, 31, 23, 0, tzinfo=tz.tzoffset(None, -3600))
        assert year_month_of(value) == "2025-01"

    def test_month_name(self):
        """Month numbers map to English names."""
        assert month_name("04") == "April"
        assert month_name(12) == "December"
        assert month_name("13") == "13"
