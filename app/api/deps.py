# app/api/deps.py
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.account import get_account_context
from app.db.models.appointment import Appointment
from app.schemas.appointment import AppointmentOut
from app.services.locks import SlotLockRegistry


def get_slot_locks(request: Request) -> SlotLockRegistry:
    """The application's booking lock registry (set up in app.main)."""
    return request.app.state.slot_locks


async def appointment_out(db: AsyncSession, appt: Appointment) -> AppointmentOut:
    """Render an appointment in its account's local time."""
    ctx = await get_account_context(db, appt.account_id)
    return AppointmentOut.from_model(appt, ctx.timezone)
