# app/services/review.py
"""
Booking status policy and the manual review workflow.

A tenant's review mode decides whether a fresh booking is settled right away
(``confirmed``) or waits for a human (``pending``). Pending appointments
still occupy their time slot.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional, Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AppointmentNotFound, InvalidStatusTransition
from app.core.status import AppointmentStatus
from app.crud.appointment import get_appointment, list_appointments, update_appointment_status
from app.db.models.appointment import Appointment

logger = structlog.get_logger(__name__)


class ReviewMode(str, Enum):
    NEVER = "never"
    ON_REDFLAG = "on_redflag"
    ALWAYS = "always"


def decide_initial_status(review_mode: ReviewMode | str, is_flagged: bool) -> AppointmentStatus:
    mode = ReviewMode(review_mode)
    if mode is ReviewMode.ALWAYS:
        return AppointmentStatus.PENDING
    if mode is ReviewMode.ON_REDFLAG and is_flagged:
        return AppointmentStatus.PENDING
    return AppointmentStatus.CONFIRMED


async def list_pending(db: AsyncSession, account_id: Optional[int] = None) -> Sequence[Appointment]:
    """Appointments waiting for review, oldest first."""
    return await list_appointments(
        db,
        account_id=account_id,
        statuses=[AppointmentStatus.PENDING],
        include_system_wide=False,
        limit=None,
    )


async def _load_pending(db: AsyncSession, appointment_id: int, account_id: Optional[int]) -> Appointment:
    appt = await get_appointment(db, appointment_id)
    if appt is None or (account_id is not None and appt.account_id != account_id):
        raise AppointmentNotFound("Appointment not found", appointment_id=appointment_id)
    if appt.status != AppointmentStatus.PENDING.value:
        raise InvalidStatusTransition(
            f"Appointment is not pending (current status: {appt.status})",
            appointment_id=appointment_id,
            status=appt.status,
        )
    return appt


async def approve_appointment(db: AsyncSession, appointment_id: int, *, account_id: Optional[int] = None) -> Appointment:
    await _load_pending(db, appointment_id, account_id)
    appt = await update_appointment_status(db, appointment_id, AppointmentStatus.CONFIRMED)
    logger.info("appointment_approved", appointment_id=appointment_id)
    return appt


async def reject_appointment(
    db: AsyncSession,
    appointment_id: int,
    *,
    reason: Optional[str] = None,
    account_id: Optional[int] = None,
) -> Appointment:
    await _load_pending(db, appointment_id, account_id)
    note = f"[REJECTED: {reason}]" if reason else "[REJECTED]"
    appt = await update_appointment_status(db, appointment_id, AppointmentStatus.CANCELLED, note=note)
    logger.info("appointment_rejected", appointment_id=appointment_id, reason=reason)
    return appt
