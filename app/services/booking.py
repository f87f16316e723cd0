# app/services/booking.py
"""
Booking orchestration: conflict check, status policy and insert.

Check and insert run in one database transaction while the caller's
``SlotLockRegistry`` holds every UTC date the buffered candidate touches.
On PostgreSQL the same dates are also held with transaction-scoped advisory
locks so separate worker processes serialize too.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

import sqlalchemy as sa
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import (
    AccountNotFound,
    AppointmentNotFound,
    InvalidBookingRequest,
    InvalidStatusTransition,
    ServiceNotFound,
    SlotUnavailable,
    translate_storage_errors,
)
from app.core.intervals import Interval, buffer, overlaps
from app.core.status import AppointmentStatus, can_transition
from app.core.timezones import LocalDateTime, ensure_utc
from app.crud import appointment as appointment_crud
from app.crud.account import get_account, get_account_context
from app.crud.service import get_service
from app.db.models.appointment import Appointment
from app.services.locks import SlotLockRegistry
from app.services.review import decide_initial_status
from app.utils.phone import normalize_phone

logger = structlog.get_logger(__name__)

DEFAULT_DURATION_MINUTES = 30


def _buffers(buffer_before: Optional[int], buffer_after: Optional[int]) -> tuple[int, int]:
    before = settings.BOOKING_BUFFER_BEFORE_MINUTES if buffer_before is None else buffer_before
    after = settings.BOOKING_BUFFER_AFTER_MINUTES if buffer_after is None else buffer_after
    return before, after


def slot_days(window: Interval) -> List[date]:
    """UTC calendar dates that ``window`` touches; the lock keys for a booking.

    Keys are UTC so bookings made in different account zones still meet on
    the same key when their buffered windows overlap.
    """
    first = ensure_utc(window.start).date()
    last = ensure_utc(window.end - timedelta(microseconds=1)).date()
    return [first + timedelta(days=n) for n in range((last - first).days + 1)]


async def find_conflicts(
    db: AsyncSession,
    account_id: Optional[int],
    starts_at_utc: datetime,
    duration_minutes: int,
    *,
    buffer_before: Optional[int] = None,
    buffer_after: Optional[int] = None,
    exclude_id: Optional[int] = None,
) -> list[Appointment]:
    """Active appointments (own and system-wide) that collide with the candidate.

    Existing appointments are widened by the buffers exactly as availability
    widens them, so a start offered by ``check_availability`` never conflicts.
    ``account_id=None`` checks against every account.
    """
    before, after = _buffers(buffer_before, buffer_after)
    candidate = Interval(starts_at_utc, starts_at_utc + timedelta(minutes=duration_minutes))
    search = buffer(candidate, after, before)

    existing = await appointment_crud.list_active_appointments(db, account_id, search.start, search.end)
    return [
        appt for appt in existing
        if appt.id != exclude_id
        and overlaps(buffer(Interval(appt.starts_at_utc, appt.ends_at_utc), before, after), candidate)
    ]


def _advisory_key(day: date) -> int:
    return day.toordinal()


@translate_storage_errors
async def _lock_slot_days(db: AsyncSession, account_id: Optional[int], days: Iterable[date]):
    """Transaction-scoped PostgreSQL advisory locks mirroring SlotLockRegistry."""
    if db.get_bind().dialect.name != "postgresql":
        return
    for day in sorted(days):
        key = _advisory_key(day)
        if account_id is None:
            await db.execute(sa.text("SELECT pg_advisory_xact_lock(:key)"), {"key": key})
            continue
        await db.execute(sa.text("SELECT pg_advisory_xact_lock_shared(:key)"), {"key": key})
        await db.execute(
            sa.text("SELECT pg_advisory_xact_lock(:account, :day)"),
            {"account": account_id & 0x7FFFFFFF, "day": key},
        )


async def book_appointment(
    db: AsyncSession,
    locks: SlotLockRegistry,
    account_id: Optional[int],
    *,
    local_datetime: str,
    duration_minutes: Optional[int] = None,
    customer_name: Optional[str] = None,
    customer_phone: Optional[str] = None,
    customer_email: Optional[str] = None,
    service_id: Optional[int] = None,
    appointment_type: Optional[str] = None,
    notes: Optional[str] = None,
    is_flagged: bool = False,
    buffer_before: Optional[int] = None,
    buffer_after: Optional[int] = None,
) -> Appointment:
    """
    Book ``local_datetime`` (account wall-clock time) for ``account_id``.
    ``account_id=None`` books a system-wide block.

    Raises AccountNotFound, ServiceNotFound, InvalidTimeFormat,
    InvalidBookingRequest or SlotUnavailable.
    """
    if account_id is not None and await get_account(db, account_id) is None:
        raise AccountNotFound("Account not found", account_id=account_id)
    ctx = await get_account_context(db, account_id)

    if service_id is not None:
        service = await get_service(db, service_id)
        if service is None or service.account_id != account_id or not service.is_active:
            raise ServiceNotFound("Service not found", service_id=service_id)
        duration_minutes = duration_minutes or service.duration_min
        appointment_type = appointment_type or service.name

    duration = duration_minutes or DEFAULT_DURATION_MINUTES
    if duration <= 0 or duration > settings.MAX_APPOINTMENT_MINUTES:
        raise InvalidBookingRequest(
            f"duration must be between 1 and {settings.MAX_APPOINTMENT_MINUTES} minutes",
            duration=duration,
        )

    try:
        phone = normalize_phone(customer_phone)
    except ValueError as exc:
        raise InvalidBookingRequest(str(exc), field="customer_phone") from exc

    start = LocalDateTime.parse(local_datetime, ctx.timezone)
    before, after = _buffers(buffer_before, buffer_after)
    candidate = Interval(start.instant, start.instant + timedelta(minutes=duration))
    days = slot_days(buffer(candidate, before, after))
    status = decide_initial_status(ctx.review_mode, is_flagged)

    async with locks.hold(account_id, *days):
        await _lock_slot_days(db, account_id, days)
        conflicts = await find_conflicts(
            db, account_id, start.instant, duration,
            buffer_before=before, buffer_after=after,
        )
        if conflicts:
            # Read ids before rollback expires the loaded rows
            conflicting_ids = [c.id for c in conflicts]
            await db.rollback()
            logger.info(
                "booking_conflict",
                account_id=account_id,
                requested=start.isoformat_local(),
                conflicting_ids=conflicting_ids,
            )
            raise SlotUnavailable(
                "Requested time is not available.",
                account_id=account_id,
                requested=start.isoformat_local(),
                conflicting_ids=conflicting_ids,
            )

        appt = await appointment_crud.insert_appointment(
            db,
            account_id=account_id,
            starts_at_utc=start.instant,
            duration_min=duration,
            status=status,
            customer_name=customer_name,
            customer_phone=phone,
            customer_email=customer_email,
            appointment_type=appointment_type,
            service_id=service_id,
            notes=notes,
        )

    logger.info(
        "appointment_booked",
        appointment_id=appt.id,
        account_id=account_id,
        local_start=start.isoformat_local(),
        duration_min=duration,
        status=appt.status,
    )
    return appt


async def _load_for_account(db: AsyncSession, appointment_id: int, account_id: Optional[int]) -> Appointment:
    appt = await appointment_crud.get_appointment(db, appointment_id)
    if appt is None or (account_id is not None and appt.account_id != account_id):
        raise AppointmentNotFound("Appointment not found", appointment_id=appointment_id)
    return appt


async def update_appointment_status(
    db: AsyncSession,
    appointment_id: int,
    status: AppointmentStatus | str,
    *,
    account_id: Optional[int] = None,
    note: Optional[str] = None,
) -> Appointment:
    """Move an appointment along ALLOWED_TRANSITIONS."""
    target = AppointmentStatus(status)
    appt = await _load_for_account(db, appointment_id, account_id)
    current = AppointmentStatus(appt.status)
    if current is target and target is AppointmentStatus.CANCELLED:
        return appt
    if not can_transition(current, target):
        raise InvalidStatusTransition(
            f"Cannot change status from {current.value} to {target.value}",
            appointment_id=appointment_id,
            status=current.value,
            target=target.value,
        )
    appt = await appointment_crud.update_appointment_status(db, appointment_id, target, note=note)
    logger.info("appointment_status_changed", appointment_id=appointment_id, old=current.value, new=target.value)
    return appt


async def cancel_appointment(
    db: AsyncSession,
    appointment_id: int,
    reason: Optional[str] = None,
    *,
    account_id: Optional[int] = None,
) -> Appointment:
    """Cancel; repeating the call on a cancelled appointment is a no-op."""
    return await update_appointment_status(
        db,
        appointment_id,
        AppointmentStatus.CANCELLED,
        account_id=account_id,
        note=f"Cancelled: {reason}" if reason else None,
    )
