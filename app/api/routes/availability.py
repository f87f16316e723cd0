# app/api/routes/availability.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_session
from app.schemas.availability import AvailabilityOut
from app.services.availability import check_availability

router = APIRouter(tags=["availability"])


@router.get("/accounts/{account_id}/availability", response_model=AvailabilityOut)
async def get_availability(
    account_id: int,
    date: str = Query(..., description="Local date, YYYY-MM-DD"),
    duration: int = Query(30, gt=0, description="Appointment length in minutes"),
    db: AsyncSession = Depends(get_session),
):
    result = await check_availability(db, account_id, date, duration)
    return AvailabilityOut.from_result(result)
