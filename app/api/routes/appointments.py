# app/api/routes/appointments.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import appointment_out, get_slot_locks
from app.core.errors import AccountNotFound
from app.core.timezones import local_day_bounds, parse_date
from app.crud.account import get_account_context
from app.crud.appointment import list_appointments
from app.db.session import get_session
from app.schemas.appointment import AppointmentCreate, AppointmentOut, ReasonIn, StatusUpdate
from app.services.booking import book_appointment, cancel_appointment, update_appointment_status
from app.services.locks import SlotLockRegistry

router = APIRouter(tags=["appointments"])


@router.post(
    "/accounts/{account_id}/appointments",
    response_model=AppointmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_appointment(
    account_id: int,
    payload: AppointmentCreate,
    db: AsyncSession = Depends(get_session),
    locks: SlotLockRegistry = Depends(get_slot_locks),
):
    appt = await book_appointment(
        db,
        locks,
        account_id,
        local_datetime=payload.local_datetime,
        duration_minutes=payload.duration_minutes,
        customer_name=payload.customer_name,
        customer_phone=payload.customer_phone,
        customer_email=payload.customer_email,
        service_id=payload.service_id,
        appointment_type=payload.appointment_type,
        notes=payload.notes,
        is_flagged=payload.is_flagged,
    )
    return await appointment_out(db, appt)


@router.get("/accounts/{account_id}/appointments", response_model=List[AppointmentOut])
async def get_appointments(
    account_id: int,
    start: Optional[str] = Query(None, description="First local date, YYYY-MM-DD"),
    end: Optional[str] = Query(None, description="Last local date (inclusive), YYYY-MM-DD"),
    status_: Optional[str] = Query(None, alias="status", description="Comma-separated statuses or 'all'; default active"),
    db: AsyncSession = Depends(get_session),
):
    ctx = await get_account_context(db, account_id)
    if not ctx.exists:
        raise AccountNotFound("Account not found", account_id=account_id)

    start_utc = local_day_bounds(parse_date(start), ctx.timezone)[0] if start else None
    end_utc = local_day_bounds(parse_date(end), ctx.timezone)[1] if end else None
    rows = await list_appointments(
        db,
        account_id=account_id,
        start_utc=start_utc,
        end_utc=end_utc,
        statuses=status_,
    )
    return [AppointmentOut.from_model(a, ctx.timezone) for a in rows]


@router.post("/appointments/{appointment_id}/cancel", response_model=AppointmentOut)
async def cancel(
    appointment_id: int,
    payload: Optional[ReasonIn] = None,
    db: AsyncSession = Depends(get_session),
):
    appt = await cancel_appointment(db, appointment_id, payload.reason if payload else None)
    return await appointment_out(db, appt)


@router.patch("/appointments/{appointment_id}/status", response_model=AppointmentOut)
async def change_status(
    appointment_id: int,
    payload: StatusUpdate,
    db: AsyncSession = Depends(get_session),
):
    appt = await update_appointment_status(db, appointment_id, payload.status, note=payload.note)
    return await appointment_out(db, appt)
