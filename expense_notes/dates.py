"""
Date/Time Normalization

Every timestamp stored in a note is read through parse_datetime and
written through format_instant.

Reading accepts mixed precision:
- date only            2025-01-31
- local datetime       2025-01-31T09:00 / 2025-01-31 09:00:00
- UTC                  2025-01-31T09:00:00Z
- fixed offset         2025-01-31T09:00:00+02:00

Strings carrying an offset (or Z) are absolute. The TimezonePolicy only
decides what a naive string means.

DESIGN DECISION: Unparsable input never raises. It falls back to "now",
but the fallback is an explicit FellBackToNow outcome so callers and tests
can tell which path was taken.
"""

import re
from datetime import date, datetime, timedelta, tzinfo
from enum import Enum
from typing import Literal, Optional, Union

from dateutil import parser as date_parser
from dateutil import tz
from dateutil.parser import isoparse
from pydantic import BaseModel, ConfigDict, Field

from expense_notes.log import get_logger


logger = get_logger(__name__)

_OFFSET_RE = re.compile(
    r"^(?:utc|gmt)?\s*([+-])(\d{1,2})(?::(\d{2})|(\.\d+))?$"
)

_ZONE_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_+\-]*(?:/[A-Za-z0-9_+\-]+)+$")

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


class PolicyKind(str, Enum):
    """How naive timestamps are anchored."""
    LOCAL = "local"
    UTC = "utc"
    OFFSET = "offset"
    ZONE = "zone"


class TimezonePolicy(BaseModel):
    """
    Resolves naive timestamps to absolute instants.

    LOCAL uses the host calendar (DST-aware), ZONE a named IANA zone
    such as Europe/Berlin (DST-aware), UTC a zero offset and OFFSET a
    fixed number of hours.
    """
    model_config = ConfigDict(frozen=True)

    kind: PolicyKind = PolicyKind.LOCAL
    offset_hours: float = Field(default=0.0, ge=-14, le=14)
    zone: Optional[str] = None

    @classmethod
    def local(cls) -> "TimezonePolicy":
        return cls(kind=PolicyKind.LOCAL)

    @classmethod
    def utc(cls) -> "TimezonePolicy":
        return cls(kind=PolicyKind.UTC)

    @classmethod
    def fixed(cls, hours: float) -> "TimezonePolicy":
        return cls(kind=PolicyKind.OFFSET, offset_hours=hours)

    @classmethod
    def named(cls, zone: str) -> "TimezonePolicy":
        """
        Policy for an IANA zone name.

        Raises:
            ValueError: If the zone is unknown
        """
        if tz.gettz(zone) is None:
            raise ValueError(f"Unknown time zone: {zone}")
        return cls(kind=PolicyKind.ZONE, zone=zone)

    @classmethod
    def parse(cls, text: Optional[str]) -> "TimezonePolicy":
        """
        Read a policy from configuration text.

        Accepts 'local', 'utc', '+2', '-5', '+5.5', '+05:30' and IANA
        zone names like 'Europe/Berlin'. Anything else falls back to
        local time with a warning.
        """
        value = (text or "").strip().lower()
        if value in ("", "local"):
            return cls.local()
        if value in ("utc", "z", "gmt"):
            return cls.utc()

        match = _OFFSET_RE.match(value)
        if match:
            sign, hours, minutes, fraction = match.groups()
            amount = int(hours)
            if minutes:
                amount += int(minutes) / 60
            if fraction:
                amount += float(fraction)
            if sign == "-":
                amount = -amount
            if -14 <= amount <= 14:
                return cls.fixed(amount)

        name = (text or "").strip()
        if _ZONE_NAME_RE.match(name) and tz.gettz(name) is not None:
            return cls.named(name)

        logger.warning("unknown_timezone_policy", policy=text)
        return cls.local()

    def tzinfo(self) -> tzinfo:
        """Zone attached to naive timestamps."""
        if self.kind == PolicyKind.UTC:
            return tz.UTC
        if self.kind == PolicyKind.OFFSET:
            return tz.tzoffset(None, int(round(self.offset_hours * 3600)))
        if self.kind == PolicyKind.ZONE:
            return tz.gettz(self.zone)
        return tz.tzlocal()

    def localize(self, instant: datetime) -> datetime:
        """
        Re-express an instant in the policy's own zone.

        Stored text carries a fixed offset ('+01:00'). Calendar steps must
        run in the DST-aware zone so 09:00 stays 09:00 after a change;
        LOCAL and ZONE convert, UTC and OFFSET keep the value as read.
        """
        if self.kind in (PolicyKind.LOCAL, PolicyKind.ZONE):
            return ensure_aware(instant, self).astimezone(self.tzinfo())
        return instant


class Parsed(BaseModel):
    """The text was a valid timestamp."""
    model_config = ConfigDict(frozen=True)

    outcome: Literal["parsed"] = "parsed"
    instant: datetime


class FellBackToNow(BaseModel):
    """The text could not be read; `instant` is the current time."""
    model_config = ConfigDict(frozen=True)

    outcome: Literal["fell_back_to_now"] = "fell_back_to_now"
    instant: datetime
    reason: str


ParseOutcome = Union[Parsed, FellBackToNow]


def now_in(policy: Optional[TimezonePolicy] = None) -> datetime:
    """Current time as an aware datetime in the policy's zone."""
    policy = policy or TimezonePolicy.local()
    return datetime.now(policy.tzinfo())


def ensure_aware(
    value: Union[date, datetime],
    policy: Optional[TimezonePolicy] = None,
) -> datetime:
    """Attach the policy zone to naive values; dates become midnight."""
    policy = policy or TimezonePolicy.local()
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if value.tzinfo is None or value.utcoffset() is None:
        value = value.replace(tzinfo=policy.tzinfo())
    return value


def parse_datetime(
    text: Union[str, date, datetime, None],
    policy: Optional[TimezonePolicy] = None,
    now: Optional[datetime] = None,
) -> ParseOutcome:
    """
    Parse a timestamp of any supported precision.

    Args:
        text: Raw cell text (date and datetime objects are accepted too)
        policy: Resolution for naive strings (default: local)
        now: Instant used for the fallback (default: current time)

    Returns:
        Parsed on success, FellBackToNow otherwise. Never raises.
    """
    policy = policy or TimezonePolicy.local()

    if isinstance(text, (date, datetime)):
        return Parsed(instant=ensure_aware(text, policy))

    raw = "" if text is None else str(text).strip()
    if not raw:
        return _fall_back(raw, "empty date", policy, now)

    try:
        value = isoparse(raw)
    except (ValueError, OverflowError):
        try:
            value = date_parser.parse(raw)
        except (ValueError, OverflowError) as e:
            return _fall_back(raw, f"unparsable date: {e}", policy, now)

    return Parsed(instant=ensure_aware(value, policy))


def parse_instant(
    text: Union[str, date, datetime, None],
    policy: Optional[TimezonePolicy] = None,
    now: Optional[datetime] = None,
) -> datetime:
    """Shortcut for parse_datetime(...).instant."""
    return parse_datetime(text, policy, now).instant


def _fall_back(
    raw: str,
    reason: str,
    policy: TimezonePolicy,
    now: Optional[datetime],
) -> FellBackToNow:
    instant = ensure_aware(now, policy) if now is not None else now_in(policy)
    logger.warning("date_fell_back_to_now", raw=raw, reason=reason)
    return FellBackToNow(instant=instant, reason=reason)


def format_instant(instant: Union[date, datetime]) -> str:
    """
    Serialize an instant independently of any policy.

    Always carries an explicit offset; UTC is written with a Z suffix.
    Naive values are treated as local time.
    """
    instant = ensure_aware(instant)
    text = instant.isoformat()
    if instant.utcoffset() == timedelta(0) and text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


def year_month_of(instant: Union[date, datetime]) -> str:
    """YYYY-MM of the wall-clock date."""
    return f"{instant.year:04d}-{instant.month:02d}"


def month_name(month: Union[int, str]) -> str:
    """Month name for 1-12 (or '01'-'12'); unknown values pass through."""
    try:
        number = int(month)
    except (TypeError, ValueError):
        return str(month)
    if 1 <= number <= 12:
        return MONTH_NAMES[number - 1]
    return str(month)
