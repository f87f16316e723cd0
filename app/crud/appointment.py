# app/crud/appointment.py

from __future__ import annotations
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence, Union

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from app.core.config import settings
from app.core.errors import SlotUnavailable, translate_storage_errors
from app.core.intervals import Interval, overlaps
from app.core.status import AppointmentStatus, status_filter
from app.core.timezones import ensure_utc
from app.db.models.appointment import Appointment

StatusFilter = Optional[Union[str, Iterable[Union[str, AppointmentStatus]]]]


def _scope_to_account(q, account_id: Optional[int], include_system_wide: bool):
    if account_id is None:
        return q
    if include_system_wide:
        return q.where(sa.or_(Appointment.account_id == account_id, Appointment.account_id.is_(None)))
    return q.where(Appointment.account_id == account_id)


@translate_storage_errors
async def get_appointment(db: AsyncSession, appointment_id: int) -> Optional[Appointment]:
    return await db.get(Appointment, appointment_id)


@translate_storage_errors
async def list_appointments(
    db: AsyncSession,
    *,
    account_id: Optional[int] = None,
    start_utc: Optional[datetime] = None,
    end_utc: Optional[datetime] = None,
    statuses: StatusFilter = None,
    include_system_wide: bool = True,
    limit: Optional[int] = 500,
) -> Sequence[Appointment]:
    """Appointments starting in ``[start_utc, end_utc)``.

    ``statuses=None`` keeps only active appointments, ``"all"`` disables the
    status filter. With an ``account_id``, system-wide rows (account_id NULL)
    are included unless ``include_system_wide`` is False.
    """
    q = _scope_to_account(sa.select(Appointment), account_id, include_system_wide)
    wanted = status_filter(statuses)
    if wanted is not None:
        q = q.where(Appointment.status.in_(wanted))
    if start_utc is not None:
        q = q.where(Appointment.starts_at >= ensure_utc(start_utc))
    if end_utc is not None:
        q = q.where(Appointment.starts_at < ensure_utc(end_utc))
    q = q.order_by(Appointment.starts_at.asc(), Appointment.id.asc())
    if limit is not None:
        q = q.limit(limit)
    res = await db.execute(q)
    return res.scalars().all()


@translate_storage_errors
async def list_active_appointments(
    db: AsyncSession,
    account_id: Optional[int],
    start_utc: datetime,
    end_utc: datetime,
) -> list[Appointment]:
    """Active appointments whose ``[starts_at, starts_at + duration)`` overlaps the range.

    Always includes system-wide rows; ``account_id=None`` means every account.
    Rows are pre-selected by start time widened by MAX_APPOINTMENT_MINUTES and
    then filtered by real overlap, which keeps the query dialect-neutral.
    """
    window = Interval(ensure_utc(start_utc), ensure_utc(end_utc))
    lookbehind = timedelta(minutes=settings.MAX_APPOINTMENT_MINUTES)

    q = _scope_to_account(sa.select(Appointment), account_id, include_system_wide=True)
    q = q.where(
        Appointment.status.in_(status_filter(None)),
        Appointment.starts_at >= window.start - lookbehind,
        Appointment.starts_at < window.end,
    ).order_by(Appointment.starts_at.asc(), Appointment.id.asc())
    res = await db.execute(q)

    return [
        appt for appt in res.scalars().all()
        if overlaps(Interval(appt.starts_at_utc, appt.ends_at_utc), window)
    ]


@translate_storage_errors
async def insert_appointment(
    db: AsyncSession,
    *,
    account_id: Optional[int],
    starts_at_utc: datetime,
    duration_min: int,
    status: Union[str, AppointmentStatus],
    customer_name: Optional[str] = None,
    customer_phone: Optional[str] = None,
    customer_email: Optional[str] = None,
    appointment_type: Optional[str] = None,
    service_id: Optional[int] = None,
    notes: Optional[str] = None,
    commit: bool = True,
) -> Appointment:
    appt = Appointment(
        account_id=account_id,
        starts_at=ensure_utc(starts_at_utc),
        duration_min=duration_min,
        status=AppointmentStatus(status).value,
        customer_name=customer_name,
        customer_phone=customer_phone,
        customer_email=customer_email,
        appointment_type=appointment_type,
        service_id=service_id,
        notes=notes,
    )
    db.add(appt)

    try:
        if commit:
            await db.commit()
            await db.refresh(appt)
        else:
            await db.flush()
        return appt
    except IntegrityError:
        await db.rollback()
        raise SlotUnavailable("Appointment collides with an existing booking.", account_id=account_id)


@translate_storage_errors
async def update_appointment_status(
    db: AsyncSession,
    appointment_id: int,
    status: Union[str, AppointmentStatus],
    *,
    note: Optional[str] = None,
) -> Optional[Appointment]:
    """Set the status as-is; transition rules live in the booking service."""
    appt = await db.get(Appointment, appointment_id)
    if not appt:
        return None

    target = AppointmentStatus(status)
    if target is AppointmentStatus.CANCELLED:
        appt.mark_as_cancelled()
    else:
        appt.status = target.value
    if note:
        appt.append_note(note)

    await db.commit()
    await db.refresh(appt)
    return appt
