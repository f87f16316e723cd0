# app/api/routes/review.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import appointment_out
from app.db.session import get_session
from app.schemas.appointment import AppointmentOut, ReasonIn
from app.services.review import approve_appointment, list_pending, reject_appointment

router = APIRouter(prefix="/review", tags=["review"])


@router.get("/pending", response_model=List[AppointmentOut])
async def pending(
    account_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_session),
):
    return [await appointment_out(db, appt) for appt in await list_pending(db, account_id)]


@router.post("/{appointment_id}/approve", response_model=AppointmentOut)
async def approve(appointment_id: int, db: AsyncSession = Depends(get_session)):
    appt = await approve_appointment(db, appointment_id)
    return await appointment_out(db, appt)


@router.post("/{appointment_id}/reject", response_model=AppointmentOut)
async def reject(
    appointment_id: int,
    payload: Optional[ReasonIn] = None,
    db: AsyncSession = Depends(get_session),
):
    appt = await reject_appointment(db, appointment_id, reason=payload.reason if payload else None)
    return await appointment_out(db, appt)
