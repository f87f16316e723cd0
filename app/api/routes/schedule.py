# app/api/routes/schedule.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.business import WeeklySchedule
from app.core.errors import AccountNotFound
from app.core.timezones import parse_date
from app.crud.account import get_account
from app.crud.availability import (
    add_blackout_date,
    get_weekly_schedule,
    list_blackout_dates,
    remove_blackout_date,
    update_weekly_schedule,
)
from app.db.session import get_session
from app.schemas.availability import BlackoutCreate, BlackoutOut

router = APIRouter(prefix="/accounts/{account_id}", tags=["schedule"])


async def require_account(account_id: int, db: AsyncSession = Depends(get_session)) -> int:
    if await get_account(db, account_id) is None:
        raise AccountNotFound("Account not found", account_id=account_id)
    return account_id


@router.get("/schedule", response_model=WeeklySchedule)
async def read_schedule(account_id: int = Depends(require_account), db: AsyncSession = Depends(get_session)):
    return await get_weekly_schedule(db, account_id)


@router.put("/schedule", response_model=WeeklySchedule)
async def write_schedule(
    schedule: WeeklySchedule,
    account_id: int = Depends(require_account),
    db: AsyncSession = Depends(get_session),
):
    return await update_weekly_schedule(db, account_id, schedule)


@router.get("/blackout-dates", response_model=List[BlackoutOut])
async def read_blackouts(
    start: Optional[str] = Query(None, description="YYYY-MM-DD"),
    end: Optional[str] = Query(None, description="YYYY-MM-DD"),
    account_id: int = Depends(require_account),
    db: AsyncSession = Depends(get_session),
):
    rows = await list_blackout_dates(
        db,
        account_id,
        start=parse_date(start) if start else None,
        end=parse_date(end) if end else None,
    )
    return [BlackoutOut.from_model(r) for r in rows]


@router.post("/blackout-dates", response_model=BlackoutOut, status_code=status.HTTP_201_CREATED)
async def create_blackout(
    payload: BlackoutCreate,
    account_id: int = Depends(require_account),
    db: AsyncSession = Depends(get_session),
):
    row = await add_blackout_date(
        db, account_id, day=payload.date, reason=payload.reason, is_recurring=payload.is_recurring
    )
    return BlackoutOut.from_model(row)


@router.delete("/blackout-dates/{blackout_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_blackout(
    blackout_id: int,
    account_id: int = Depends(require_account),
    db: AsyncSession = Depends(get_session),
):
    if not await remove_blackout_date(db, account_id, blackout_id):
        raise HTTPException(status_code=404, detail="Blackout date not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
