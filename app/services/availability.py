# app/services/availability.py
"""
Free-time computation for one account and one local calendar day.

Business hours come from the weekly schedule, booked time from every active
appointment of the account plus every system-wide appointment, each widened
by the buffer policy. Everything is computed in wall-clock minutes of the
requested day in the account's zone.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.business import DEFAULT_WEEKLY_SCHEDULE
from app.core.config import settings
from app.core.errors import InvalidBookingRequest
from app.core.intervals import Interval, buffer, format_hhmm, subtract
from app.core.timezones import local_day_bounds, minutes_since_midnight, now_in, parse_date
from app.crud.account import get_account_context
from app.crud.appointment import list_active_appointments
from app.crud.availability import get_weekly_schedule, is_blackout
from app.db.models.appointment import Appointment

logger = structlog.get_logger(__name__)

REASON_BLACKOUT = "blackout"
REASON_CLOSED = "closed"
REASON_PAST = "past"
REASON_FULLY_BOOKED = "fully_booked"


@dataclass
class AvailabilityResult:
    date: date
    timezone: str
    duration_minutes: int
    free_blocks: List[Interval] = field(default_factory=list)
    slots: List[Interval] = field(default_factory=list)
    reason: Optional[str] = None

    @property
    def is_available(self) -> bool:
        return bool(self.free_blocks)

    def blocks_hhmm(self) -> List[dict]:
        return [{"start": format_hhmm(b.start), "end": format_hhmm(b.end)} for b in self.free_blocks]

    def slots_hhmm(self) -> List[dict]:
        return [{"start": format_hhmm(s.start), "end": format_hhmm(s.end)} for s in self.slots]


def appointment_window(appt: Appointment, day: date, tz_name: str) -> Interval:
    """Appointment as wall-clock minutes relative to local midnight of ``day``."""
    return Interval(
        minutes_since_midnight(appt.starts_at_utc, day, tz_name),
        minutes_since_midnight(appt.ends_at_utc, day, tz_name),
    )


def trim_elapsed(blocks: Iterable[Interval], now_minute: int) -> List[Interval]:
    """Drop blocks that are over and start the running one at ``now_minute``."""
    return [
        Interval(max(b.start, now_minute), b.end)
        for b in blocks
        if b.end > now_minute
    ]


def compute_free_blocks(
    business_ranges: Sequence[Interval],
    booked: Iterable[Interval],
    *,
    buffer_before: int,
    buffer_after: int,
    now_minute: Optional[int] = None,
) -> List[Interval]:
    """Pure core: business hours minus buffered bookings, optionally trimmed to now."""
    cuts = [buffer(b, buffer_before, buffer_after) for b in booked]
    free = subtract(business_ranges, cuts)
    if now_minute is not None:
        free = trim_elapsed(free, now_minute)
    return free


def fits(blocks: Iterable[Interval], start_minute: int, duration_minutes: int) -> bool:
    """True when ``[start, start + duration)`` lies inside one free block."""
    end_minute = start_minute + duration_minutes
    return any(b.start <= start_minute and end_minute <= b.end for b in blocks)


def candidate_slots(blocks: Iterable[Interval], duration_minutes: int, step_minutes: int) -> List[Interval]:
    """Bookable starts of ``duration_minutes`` on a ``step_minutes`` grid from midnight."""
    slots: List[Interval] = []
    for b in blocks:
        start = -(-b.start // step_minutes) * step_minutes
        while start + duration_minutes <= b.end:
            slots.append(Interval(start, start + duration_minutes))
            start += step_minutes
    return slots


def _ceil_minute(local_now: datetime) -> int:
    minute = local_now.hour * 60 + local_now.minute
    if local_now.second or local_now.microsecond:
        minute += 1
    return minute


async def check_availability(
    db: AsyncSession,
    account_id: int,
    day: date | str,
    duration_minutes: int,
    *,
    buffer_before: Optional[int] = None,
    buffer_after: Optional[int] = None,
    step_minutes: Optional[int] = None,
    now: Optional[datetime] = None,
) -> AvailabilityResult:
    """Free blocks of ``account_id`` on local ``day``.

    A returned block does not promise that a given start fits; use ``fits``
    (or the ``slots`` list) with the requested duration.
    """
    if duration_minutes <= 0:
        raise InvalidBookingRequest("duration must be a positive number of minutes", duration=duration_minutes)

    day = parse_date(day)
    before = settings.BOOKING_BUFFER_BEFORE_MINUTES if buffer_before is None else buffer_before
    after = settings.BOOKING_BUFFER_AFTER_MINUTES if buffer_after is None else buffer_after
    step = step_minutes or settings.SLOT_STEP_MINUTES

    ctx = await get_account_context(db, account_id)
    result = AvailabilityResult(date=day, timezone=ctx.timezone, duration_minutes=duration_minutes)

    local_now = now_in(ctx.timezone, now)
    if day < local_now.date():
        result.reason = REASON_PAST
        return result

    if ctx.exists:
        if await is_blackout(db, account_id, day):
            result.reason = REASON_BLACKOUT
            logger.info("availability_checked", account_id=account_id, date=day.isoformat(), reason=result.reason)
            return result
        schedule = await get_weekly_schedule(db, account_id)
    else:
        schedule = DEFAULT_WEEKLY_SCHEDULE

    business_ranges = schedule.for_date(day).ranges()
    if not business_ranges:
        result.reason = REASON_CLOSED
        logger.info("availability_checked", account_id=account_id, date=day.isoformat(), reason=result.reason)
        return result

    day_start, day_end = local_day_bounds(day, ctx.timezone)
    booked = await list_active_appointments(
        db,
        account_id,
        day_start - timedelta(minutes=before),
        day_end + timedelta(minutes=after),
    )

    result.free_blocks = compute_free_blocks(
        business_ranges,
        [appointment_window(appt, day, ctx.timezone) for appt in booked],
        buffer_before=before,
        buffer_after=after,
        now_minute=_ceil_minute(local_now) if day == local_now.date() else None,
    )
    result.slots = candidate_slots(result.free_blocks, duration_minutes, step)
    if not result.free_blocks:
        result.reason = REASON_FULLY_BOOKED

    logger.info(
        "availability_checked",
        account_id=account_id,
        date=day.isoformat(),
        booked=len(booked),
        free_blocks=len(result.free_blocks),
        reason=result.reason,
    )
    return result
