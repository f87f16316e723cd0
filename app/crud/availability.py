# app/crud/availability.py

from __future__ import annotations
from datetime import date, timedelta
from typing import Optional, Sequence

import sqlalchemy as sa
import structlog
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from app.core.business import DEFAULT_WEEKLY_SCHEDULE, WeeklySchedule
from app.core.errors import ConfigurationMissing, InvalidBookingRequest, log_error, translate_storage_errors
from app.db.models.availability import AvailabilityConfig, BlackoutDate

logger = structlog.get_logger(__name__)


async def _active_config(db: AsyncSession, account_id: int) -> Optional[AvailabilityConfig]:
    stmt = (
        sa.select(AvailabilityConfig)
        .where(AvailabilityConfig.account_id == account_id, AvailabilityConfig.is_active.is_(True))
        .order_by(AvailabilityConfig.id.desc())
        .limit(1)
    )
    res = await db.execute(stmt)
    return res.scalar_one_or_none()


@translate_storage_errors
async def ensure_weekly_schedule(db: AsyncSession, account_id: int) -> AvailabilityConfig:
    """Self-healing: an account without a schedule gets the Mon–Fri 09:00–17:00 default."""
    config = await _active_config(db, account_id)
    if config is not None:
        return config

    log_error(ConfigurationMissing("no weekly schedule configured", account_id=account_id))
    config = AvailabilityConfig(
        account_id=account_id,
        weekly_schedule=DEFAULT_WEEKLY_SCHEDULE.to_storage(),
        is_active=True,
    )
    db.add(config)
    await db.commit()
    await db.refresh(config)
    logger.info("default_schedule_created", account_id=account_id)
    return config


async def get_weekly_schedule(db: AsyncSession, account_id: int) -> WeeklySchedule:
    config = await ensure_weekly_schedule(db, account_id)
    try:
        return WeeklySchedule.model_validate(config.weekly_schedule or {})
    except ValidationError as exc:
        # A corrupt row must not take booking down; fall back to the default hours
        logger.error("weekly_schedule_invalid", account_id=account_id, error=str(exc))
        return DEFAULT_WEEKLY_SCHEDULE


@translate_storage_errors
async def update_weekly_schedule(db: AsyncSession, account_id: int, schedule: WeeklySchedule) -> WeeklySchedule:
    config = await _active_config(db, account_id)
    if config is None:
        config = AvailabilityConfig(account_id=account_id, is_active=True)
        db.add(config)
    config.weekly_schedule = schedule.to_storage()
    await db.commit()
    logger.info("weekly_schedule_updated", account_id=account_id)
    return schedule


@translate_storage_errors
async def list_blackout_dates(
    db: AsyncSession,
    account_id: int,
    *,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> Sequence[BlackoutDate]:
    """Blackouts in ``[start, end]``; recurring rows are always returned."""
    q = sa.select(BlackoutDate).where(BlackoutDate.account_id == account_id)
    if start is not None or end is not None:
        window = sa.true()
        if start is not None:
            window = sa.and_(window, BlackoutDate.blackout_date >= start)
        if end is not None:
            window = sa.and_(window, BlackoutDate.blackout_date <= end)
        q = q.where(sa.or_(window, BlackoutDate.is_recurring.is_(True)))
    res = await db.execute(q.order_by(BlackoutDate.blackout_date.asc()))
    return res.scalars().all()


async def get_blackout_dates(
    db: AsyncSession,
    account_id: int,
    *,
    start: date,
    end: date,
) -> set[date]:
    """Concrete calendar days in ``[start, end]`` the account is closed."""
    rows = await list_blackout_dates(db, account_id, start=start, end=end)
    span = (start + timedelta(days=n) for n in range((end - start).days + 1))
    return {day for day in span if any(row.covers(day) for row in rows)}


async def is_blackout(db: AsyncSession, account_id: int, day: date) -> bool:
    return day in await get_blackout_dates(db, account_id, start=day, end=day)


@translate_storage_errors
async def add_blackout_date(
    db: AsyncSession,
    account_id: int,
    *,
    day: date,
    reason: Optional[str] = None,
    is_recurring: bool = False,
) -> BlackoutDate:
    obj = BlackoutDate(account_id=account_id, blackout_date=day, reason=reason, is_recurring=is_recurring)
    db.add(obj)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise InvalidBookingRequest("blackout date already exists", account_id=account_id, date=day.isoformat())
    await db.refresh(obj)
    return obj


@translate_storage_errors
async def remove_blackout_date(db: AsyncSession, account_id: int, blackout_id: int) -> bool:
    obj = await db.get(BlackoutDate, blackout_id)
    if not obj or obj.account_id != account_id:
        return False
    await db.delete(obj)
    await db.commit()
    return True
