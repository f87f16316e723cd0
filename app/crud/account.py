# app/crud/account.py

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import translate_storage_errors
from app.core.timezones import resolve_timezone
from app.db.models.account import Account
from app.services.review import ReviewMode

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AccountContext:
    """Per-request view of an account: resolved zone and review policy."""
    account_id: Optional[int]
    timezone: str
    review_mode: ReviewMode
    exists: bool = True


@translate_storage_errors
async def get_account(db: AsyncSession, account_id: int) -> Optional[Account]:
    return await db.get(Account, account_id)


@translate_storage_errors
async def create_account(
    db: AsyncSession,
    *,
    name: str,
    timezone: Optional[str] = None,
    review_mode: ReviewMode | str = ReviewMode.NEVER,
) -> Account:
    obj = Account(name=name, timezone=timezone, review_mode=ReviewMode(review_mode).value)
    db.add(obj)
    await db.commit()
    await db.refresh(obj)
    return obj


@translate_storage_errors
async def update_account(
    db: AsyncSession,
    account_id: int,
    *,
    timezone: Optional[str] = None,
    review_mode: Optional[ReviewMode | str] = None,
) -> Optional[Account]:
    obj = await db.get(Account, account_id)
    if not obj:
        return None
    if timezone is not None:
        obj.timezone = timezone
    if review_mode is not None:
        obj.review_mode = ReviewMode(review_mode).value
    await db.commit()
    await db.refresh(obj)
    return obj


async def get_review_mode(db: AsyncSession, account_id: Optional[int]) -> ReviewMode:
    return (await get_account_context(db, account_id)).review_mode


async def get_account_context(db: AsyncSession, account_id: Optional[int]) -> AccountContext:
    """Look the account up once; unknown zones and review modes degrade to defaults."""
    if account_id is None:
        return AccountContext(None, settings.DEFAULT_TIMEZONE, ReviewMode.NEVER)

    account = await get_account(db, account_id)
    if account is None:
        logger.warning("account_not_found_using_defaults", account_id=account_id)
        return AccountContext(account_id, settings.DEFAULT_TIMEZONE, ReviewMode.NEVER, exists=False)

    try:
        review_mode = ReviewMode(account.review_mode or ReviewMode.NEVER.value)
    except ValueError:
        logger.warning("review_mode_fallback", account_id=account_id, review_mode=account.review_mode)
        review_mode = ReviewMode.NEVER

    return AccountContext(
        account_id=account.id,
        timezone=resolve_timezone(account.timezone),
        review_mode=review_mode,
    )
