# app/core/timezones.py
"""
Conversion between an account's wall-clock time and UTC instants.

Local strings are normalized to ``YYYY-MM-DDTHH:MM:SS`` before conversion.
Zone rules come from the IANA database via ``zoneinfo``; local times that
fall into a DST gap or overlap resolve with ``fold=0`` (PEP 495): a gap time
takes the offset in force before the transition, an ambiguous time maps to
its first occurrence.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from app.core.config import settings
from app.core.errors import InvalidTimeFormat, UnknownTimezone

logger = structlog.get_logger(__name__)

UTC = timezone.utc
LOCAL_FORMAT = "%Y-%m-%dT%H:%M:%S"

_LOCAL_RE = re.compile(
    r"^\s*(\d{4})-(\d{2})-(\d{2})[T ](\d{2}):(\d{2})(?::(\d{2})(?:\.\d+)?)?"
    r"\s*(Z|[+-]\d{2}:?\d{2})?\s*$"
)
_DATE_RE = re.compile(r"^\s*(\d{4})-(\d{2})-(\d{2})\s*$")


def get_zone(name: Optional[str]) -> ZoneInfo:
    """Strict zone lookup; raises UnknownTimezone."""
    if not name:
        raise UnknownTimezone("timezone name is empty", timezone=name)
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise UnknownTimezone(f"unknown timezone: {name}", timezone=name) from exc


def resolve_timezone(name: Optional[str], *, default: Optional[str] = None) -> str:
    """Return ``name`` if it is a known zone, otherwise the default zone (logged)."""
    fallback = default or settings.DEFAULT_TIMEZONE
    try:
        get_zone(name)
        return name  # type: ignore[return-value]
    except UnknownTimezone:
        logger.warning("timezone_fallback", requested=name, fallback=fallback)
        return fallback


def _split(value: str) -> tuple[datetime, Optional[str]]:
    if not isinstance(value, str):
        raise InvalidTimeFormat("local datetime must be a string", value=repr(value))
    match = _LOCAL_RE.match(value)
    if not match:
        raise InvalidTimeFormat(
            "datetime must look like YYYY-MM-DDTHH:MM[:SS]", value=value
        )
    year, month, day, hour, minute, second, offset = match.groups()
    try:
        naive = datetime(int(year), int(month), int(day), int(hour), int(minute), int(second or 0))
    except ValueError as exc:
        raise InvalidTimeFormat(f"invalid datetime: {exc}", value=value) from exc
    return naive, offset


def normalize_local(value: str) -> str:
    """``"2025-10-20 9:00"``-style input → ``"2025-10-20T09:00:00"``.

    Offsets are rejected here; this only canonicalizes wall-clock strings.
    """
    naive, offset = _split(value)
    if offset:
        raise InvalidTimeFormat("local datetime must not carry an offset", value=value)
    return naive.strftime(LOCAL_FORMAT)


def _parse_offset(offset: str) -> timezone:
    if offset == "Z":
        return UTC
    sign = -1 if offset[0] == "-" else 1
    digits = offset[1:].replace(":", "")
    hours, minutes = int(digits[:2]), int(digits[2:])
    if hours > 23 or minutes > 59:
        raise InvalidTimeFormat("invalid UTC offset", value=offset)
    return timezone(sign * timedelta(hours=hours, minutes=minutes))


def to_instant(value: str, tz_name: str) -> datetime:
    """Local wall-clock string in ``tz_name`` → aware UTC datetime.

    A string that carries its own ``Z``/``±HH:MM`` suffix is taken as-is.
    """
    naive, offset = _split(value)
    if offset:
        return naive.replace(tzinfo=_parse_offset(offset)).astimezone(UTC)
    zone = get_zone(tz_name)
    return naive.replace(tzinfo=zone, fold=0).astimezone(UTC)


def ensure_utc(instant: datetime) -> datetime:
    """Aware UTC datetime; naive values (SQLite round trips) are taken as UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=UTC)
    return instant.astimezone(UTC)


def to_local(instant: datetime, tz_name: str) -> str:
    """UTC instant → ``YYYY-MM-DDTHH:MM:SS`` wall-clock string in ``tz_name``."""
    zone = get_zone(tz_name)
    return ensure_utc(instant).astimezone(zone).strftime(LOCAL_FORMAT)


def parse_date(value: str | date) -> date:
    """``YYYY-MM-DD`` → date; raises InvalidTimeFormat."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    match = _DATE_RE.match(value or "")
    if not match:
        raise InvalidTimeFormat("date must look like YYYY-MM-DD", value=value)
    try:
        return date(*(int(part) for part in match.groups()))
    except ValueError as exc:
        raise InvalidTimeFormat(f"invalid date: {exc}", value=value) from exc


def local_day_bounds(day: date, tz_name: str) -> tuple[datetime, datetime]:
    """UTC instants of local midnight on ``day`` and on the day after."""
    zone = get_zone(tz_name)
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return start.astimezone(UTC), end.astimezone(UTC)


def now_in(tz_name: str, now: Optional[datetime] = None) -> datetime:
    """Current (or given) instant as an aware datetime in ``tz_name``."""
    instant = ensure_utc(now) if now is not None else datetime.now(UTC)
    return instant.astimezone(get_zone(tz_name))


def minutes_since_midnight(instant: datetime, day: date, tz_name: str) -> int:
    """Wall-clock minutes of ``instant`` counted from local midnight of ``day``.

    Negative before ``day`` starts, 1440 or more after it ends.
    """
    local = ensure_utc(instant).astimezone(get_zone(tz_name))
    day_offset = (local.date() - day).days
    return day_offset * 1440 + local.hour * 60 + local.minute


@dataclass(frozen=True)
class LocalDateTime:
    """A UTC instant together with the zone it was expressed in."""

    instant: datetime
    timezone: str

    def __post_init__(self):
        object.__setattr__(self, "instant", ensure_utc(self.instant))

    @classmethod
    def parse(cls, value: str, tz_name: str) -> "LocalDateTime":
        return cls(to_instant(value, tz_name), tz_name)

    @property
    def local(self) -> datetime:
        return self.instant.astimezone(get_zone(self.timezone))

    @property
    def local_date(self) -> date:
        return self.local.date()

    @property
    def minute_of_day(self) -> int:
        local = self.local
        return local.hour * 60 + local.minute

    def isoformat_local(self) -> str:
        return self.local.strftime(LOCAL_FORMAT)

    def __add__(self, other: timedelta) -> "LocalDateTime":
        return LocalDateTime(self.instant + other, self.timezone)

    def __str__(self) -> str:
        return f"{self.isoformat_local()} {self.timezone}"
